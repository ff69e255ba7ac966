"""Allow running as: python -m raysignal"""
from dotenv import load_dotenv

load_dotenv()

from raysignal.main import cli_main  # noqa: E402

if __name__ == "__main__":
    cli_main()
