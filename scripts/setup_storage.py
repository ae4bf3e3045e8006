"""
Storage setup: validate remote storage configuration and create the bucket

Usage:
    python scripts/setup_storage.py            # show storage information
    python scripts/setup_storage.py --setup    # create bucket and apply CORS
"""
import argparse
import asyncio
import logging
import os
import sys

from eventmedia.config import Settings
from eventmedia.deps import get_storage_info, setup_remote_bucket, validate_remote_configuration
from eventmedia.errors import MediaStorageError

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


async def main(args) -> int:
    settings = Settings.from_env()

    try:
        validate_remote_configuration(settings)
    except MediaStorageError as e:
        print(f"✗ Remote storage configuration invalid: {e}")
        return 1
    print("✓ Remote storage configuration is valid")

    info = await get_storage_info(settings)
    print("Storage Information:")
    print(f"  R2 Configured: {info['r2_configured']}")
    print(f"  R2 Available:  {info['r2_available']}")
    print(f"  Bucket Name:   {info['bucket_name']}")
    print(f"  Public URL:    {info['public_url']}")
    print(f"  Fallback Path: {info['fallback_path']}")

    if not args.setup:
        print("\nTo set up the bucket, run: python scripts/setup_storage.py --setup")
        return 0

    print("\nSetting up bucket...")
    try:
        await setup_remote_bucket(settings, allowed_origins=args.origin or None)
    except MediaStorageError as e:
        print(f"✗ Failed to set up bucket: {e}")
        return 1

    print("✓ Bucket setup completed successfully!")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Validate and set up remote image storage')
    parser.add_argument('--setup', action='store_true',
                        help='Create the bucket and apply CORS rules')
    parser.add_argument('--origin', action='append',
                        help='Allowed CORS origin (repeatable, default: *)')
    exit_code = asyncio.run(main(parser.parse_args()))
    sys.exit(exit_code)
