"""
Pytest fixtures and configuration for testing.
"""
import io
import os

import boto3
import pytest
from moto import mock_aws
from PIL import Image

from eventmedia.services.local_file_storage import LocalFileStorage

TEST_BUCKET = 'test-event-images'


def make_image_bytes(width=100, height=100, fmt='JPEG', mode='RGB', color='red'):
    """Create an in-memory test image"""
    img = Image.new(mode, (width, height), color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def image_factory():
    return make_image_bytes


@pytest.fixture
def jpeg_bytes():
    """800x600 JPEG"""
    return make_image_bytes(800, 600, 'JPEG')


@pytest.fixture
def png_bytes():
    """640x480 PNG with alpha"""
    return make_image_bytes(640, 480, 'PNG', mode='RGBA', color=(0, 128, 255, 128))


@pytest.fixture
def local_storage(tmp_path):
    return LocalFileStorage(base_path=str(tmp_path / "uploads"), base_url="http://localhost:8080/static/uploads/")


@pytest.fixture
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ['AWS_ACCESS_KEY_ID'] = 'testing'
    os.environ['AWS_SECRET_ACCESS_KEY'] = 'testing'
    os.environ['AWS_SECURITY_TOKEN'] = 'testing'
    os.environ['AWS_SESSION_TOKEN'] = 'testing'
    os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'


@pytest.fixture
def s3_client(aws_credentials):
    """Create a mocked S3 client and bucket."""
    with mock_aws():
        client = boto3.client('s3', region_name='us-east-1')
        client.create_bucket(Bucket=TEST_BUCKET)
        yield client
