import os
import logging

import boto3
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("laundry-service.storage")

USE_AWS = os.getenv("USE_AWS", "False").lower() in ("true", "1", "yes")
BUCKET_NAME = os.getenv("QR_IMAGE_BUCKET")
LOCAL_STORAGE = os.getenv("LOCAL_STORAGE", "./local_storage/qr-codes")

_s3 = None


def _s3_client():
    global _s3
    if _s3 is None:
        _s3 = boto3.client("s3")
    return _s3


def save_file(file_name: str, data: bytes) -> str:
    """Store bytes under file_name and return where they went."""
    if USE_AWS and BUCKET_NAME:
        _s3_client().put_object(Bucket=BUCKET_NAME, Key=file_name, Body=data)
        location = f"s3://{BUCKET_NAME}/{file_name}"
    else:
        os.makedirs(LOCAL_STORAGE, exist_ok=True)
        location = os.path.join(LOCAL_STORAGE, file_name)
        with open(location, "wb") as f:
            f.write(data)
    logger.info(f"💾 Stored {file_name} at {location}")
    return location
