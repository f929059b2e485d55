import logging
import mimetypes
import os
import tempfile
import uuid

import boto3
from botocore.config import Config as BotoConfig
from flask import current_app

logger = logging.getLogger(__name__)


def allowed_file(filename):
    """Check if the file has an allowed extension."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in current_app.config['ALLOWED_EXTENSIONS']


def file_kind(filename):
    extension = filename.rsplit('.', 1)[1].lower() if '.' in filename else ''
    return 'image' if extension in current_app.config['IMAGE_EXTENSIONS'] else 'document'


def s3_client():
    return boto3.client(
        's3',
        aws_access_key_id=current_app.config['AWS_ACCESS_KEY'],
        aws_secret_access_key=current_app.config['AWS_SECRET_KEY'],
        region_name=current_app.config['AWS_REGION'],
        config=BotoConfig(connect_timeout=5, read_timeout=10, retries={'max_attempts': 3}),
    )


def save_file(file, prefix, client=None):
    """
    Upload an incoming file to S3 and return its storage id (the object key).
    """
    extension = file.filename.rsplit('.', 1)[1].lower()
    storage_id = f"{prefix}/{uuid.uuid4().hex}.{extension}"
    client = client or s3_client()

    # Save file temporarily
    with tempfile.NamedTemporaryFile(delete=False, suffix=f".{extension}") as temp_file:
        file.save(temp_file.name)
        temp_file_path = temp_file.name

    try:
        # Detect content type
        content_type, _ = mimetypes.guess_type(temp_file_path)
        content_type = content_type or "application/octet-stream"

        with open(temp_file_path, "rb") as file_data:
            client.put_object(
                Bucket=current_app.config['AWS_BUCKET_NAME'],
                Key=storage_id,
                Body=file_data,
                ContentType=content_type,
            )
        logger.debug("Uploaded %s to bucket %s", storage_id, current_app.config['AWS_BUCKET_NAME'])
    finally:
        os.unlink(temp_file_path)

    return storage_id


def get_url(storage_id, client=None):
    """Resolve a storage id to a time-limited download URL."""
    if not storage_id:
        return None
    client = client or s3_client()
    return client.generate_presigned_url(
        'get_object',
        Params={'Bucket': current_app.config['AWS_BUCKET_NAME'], 'Key': storage_id},
        ExpiresIn=current_app.config['STORAGE_URL_TTL'],
    )


def delete_file(storage_id, client=None):
    client = client or s3_client()
    client.delete_object(Bucket=current_app.config['AWS_BUCKET_NAME'], Key=storage_id)
