"""Tests for the single-request multipart path."""
import json

import pytest

from drivepush.core.api import DriveConfig
from drivepush.core.exceptions import AuthDenied, ChunkUploadError
from drivepush.core.upload import FileMetadata
from drivepush.core.upload.services import MultipartUploader, encode_multipart_related

from tests.conftest import file_resource, json_response


class TestEncodeMultipartRelated:
    """Test suite for encode_multipart_related."""

    def test_layout(self):
        body, content_type = encode_multipart_related(
            {'name': 'a.txt', 'parents': ['f']}, b'hello', 'text/plain', boundary='BOUNDARY'
        )

        assert content_type == 'multipart/related; boundary=BOUNDARY'
        assert body == (
            b'--BOUNDARY\r\n'
            b'Content-Type: application/json; charset=UTF-8\r\n\r\n'
            b'{"name": "a.txt", "parents": ["f"]}\r\n'
            b'--BOUNDARY\r\n'
            b'Content-Type: text/plain\r\n\r\n'
            b'hello'
            b'\r\n--BOUNDARY--\r\n'
        )

    def test_random_boundary(self):
        _, first = encode_multipart_related({}, b'', 'text/plain')
        _, second = encode_multipart_related({}, b'', 'text/plain')

        assert first != second


class TestMultipartUploader:
    """Test suite for MultipartUploader."""

    @pytest.fixture
    def uploader(self, transport, credentials):
        return MultipartUploader(transport, credentials, DriveConfig())

    @pytest.mark.asyncio
    async def test_upload(self, uploader, transport, credentials):
        credential = await credentials.ensure_valid()
        transport.add('POST', 'uploadType=multipart', json_response(200, file_resource(name='a.txt', size=5)))
        progress = []

        result = await uploader.upload(
            FileMetadata('a.txt', 5, 'text/plain'), 'folder-1', b'hello', credential,
            on_progress=progress.append
        )

        assert result.remote_id == 'file-1'
        assert result.byte_size == 5
        request = transport.requests[0]
        assert request.params['uploadType'] == 'multipart'
        assert request.headers['Authorization'] == f'Bearer {credential.token}'
        assert request.headers['Content-Type'].startswith('multipart/related; boundary=')
        assert b'"parents": ["folder-1"]' in request.data
        assert b'hello' in request.data
        assert progress[-1].percent_complete == 100

    @pytest.mark.asyncio
    async def test_failure(self, uploader, transport, credentials):
        credential = await credentials.ensure_valid()
        transport.add('POST', 'uploadType=multipart', json_response(
            403, {'error': {'code': 403, 'message': 'Insufficient permissions for this file'}}
        ))

        with pytest.raises(ChunkUploadError, match="Insufficient permissions") as exc_info:
            await uploader.upload(FileMetadata('a.txt', 5), 'folder-1', b'hello', credential)
        assert exc_info.value.status == 403
        assert exc_info.value.offset == 0

    @pytest.mark.asyncio
    async def test_unauthorized(self, uploader, transport, credentials):
        credential = await credentials.ensure_valid()
        transport.add('POST', 'uploadType=multipart', json_response(401, {'error': {'message': 'Invalid Credentials'}}))

        with pytest.raises(AuthDenied):
            await uploader.upload(FileMetadata('a.txt', 5), 'folder-1', b'hello', credential)
        assert credentials.peek() is None

    @pytest.mark.asyncio
    async def test_progress_counts_file_bytes(self, uploader, transport, credentials):
        """Test progress is reported against the file size, ending with one 100%."""
        credential = await credentials.ensure_valid()
        size = 100 * 1024
        transport.add('POST', 'uploadType=multipart', json_response(200, file_resource(size=size)))
        progress = []

        await uploader.upload(
            FileMetadata('a.bin', size), 'folder-1', b'a' * size, credential,
            on_progress=progress.append
        )

        assert all(p.total_bytes == size for p in progress)
        assert all(p.bytes_sent <= size for p in progress)
        assert [p.percent_complete for p in progress].count(100) == 1
        assert progress[-1].bytes_sent == size

    @pytest.mark.asyncio
    async def test_no_completion_on_failure(self, uploader, transport, credentials):
        credential = await credentials.ensure_valid()
        transport.add('POST', 'uploadType=multipart', json_response(500, {'error': {'message': 'Backend Error'}}))
        progress = []

        with pytest.raises(ChunkUploadError):
            await uploader.upload(
                FileMetadata('a.bin', 5), 'folder-1', b'hello', credential,
                on_progress=progress.append
            )

        assert not any(p.is_complete for p in progress)
