import argparse
import logging
import os
import sys

# Add the project root to the Python path
project_root = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, project_root)


from file_proxy.config import settings
from file_proxy.utils.url_signer import HttpMethod, generate_presigned_url

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_signed_url(method: str, url: str, expires_in: int, secret: str = None) -> str:
    """
    Create a pre-signed URL for the proxy.

    Args:
        method: HTTP method the URL will be used with.
        url: Absolute URL to sign.
        expires_in: Seconds until the URL expires.
        secret: Signing secret; defaults to the configured key.
    """
    return generate_presigned_url(method, url, expires_in, secret or settings.get_secret_key())


def main(argv=None):
    """Main function to parse arguments and print a signed URL."""
    parser = argparse.ArgumentParser(description="Generate pre-signed URLs for File Proxy.")
    parser.add_argument(
        "method", type=str.upper, choices=[m.value for m in HttpMethod], help="HTTP method."
    )
    parser.add_argument("url", help="Absolute URL to sign.")
    parser.add_argument(
        "--expires-in",
        type=int,
        default=settings.default_url_expiry_seconds,
        help="Seconds until the URL expires.",
    )
    parser.add_argument("--secret", help="Signing secret (defaults to URL_SIGNER_SECRET_KEY).")

    args = parser.parse_args(argv)

    try:
        signed_url = create_signed_url(args.method, args.url, args.expires_in, args.secret)
    except ValueError as e:
        logger.error(f"Cannot sign URL: {e}")
        return 1

    print(signed_url)
    return 0


if __name__ == "__main__":
    sys.exit(main())
