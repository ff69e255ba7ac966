"""Token-level lookup results: SPL mint account and token metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# 소셜/웹 링크로 인정하는 metadata attribute
SOCIAL_TRAITS: frozenset[str] = frozenset({"website", "twitter", "telegram", "discord"})


@dataclass(frozen=True)
class MintInfo:
    """Parsed SPL mint account."""

    supply: int                     # raw (smallest unit)
    decimals: int
    mint_authority: Optional[str]
    freeze_authority: Optional[str]

    @property
    def ui_supply(self) -> float:
        return self.supply / (10 ** self.decimals) if self.decimals >= 0 else 0.0


@dataclass(frozen=True)
class TokenMetadata:
    """Token name/symbol and off-chain links."""

    name: str = ""
    symbol: str = ""
    description: str = ""
    image: str = ""
    external_url: str = ""
    attributes: tuple[dict, ...] = ()
    links: dict = field(default_factory=dict)

    @property
    def has_identity(self) -> bool:
        """name과 symbol 모두 있으면 True."""
        return bool(self.name and self.symbol)

    def social_link_count(self) -> int:
        """external_url + 소셜 attribute + 링크 개수."""
        count = 1 if self.external_url else 0
        for attr in self.attributes:
            trait = str(attr.get("trait_type", "")).lower()
            if trait in SOCIAL_TRAITS and attr.get("value"):
                count += 1
        for key, value in self.links.items():
            if key.lower() in SOCIAL_TRAITS and value:
                count += 1
        return count

    @staticmethod
    def from_das_asset(asset: dict) -> TokenMetadata:
        """DAS ``getAsset`` result → TokenMetadata."""
        content = asset.get("content") or {}
        meta = content.get("metadata") or {}
        links = dict(content.get("links") or {})
        external_url = links.pop("external_url", "") or ""
        attributes = tuple(
            a for a in (meta.get("attributes") or []) if isinstance(a, dict)
        )
        return TokenMetadata(
            name=str(meta.get("name") or "").strip(),
            symbol=str(meta.get("symbol") or "").strip(),
            description=str(meta.get("description") or ""),
            image=str(links.pop("image", "") or ""),
            external_url=str(external_url),
            attributes=attributes,
            links={k: v for k, v in links.items() if isinstance(v, str)},
        )
