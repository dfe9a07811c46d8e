"""Tests for the streaming downloader."""

import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from src.melodi import download


def make_response(chunks, content_length=None, status_error=None, chunk_error=None):
    """Build a mock streaming response usable as a context manager."""
    resp = MagicMock()
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    resp.headers = {'content-length': str(content_length)} if content_length is not None else {}
    if status_error:
        resp.raise_for_status.side_effect = status_error

    def iter_content(chunk_size):
        for chunk in chunks:
            yield chunk
        if chunk_error:
            raise chunk_error

    resp.iter_content.side_effect = iter_content
    return resp


class TestParseContentLength:
    """Test Content-Length parsing."""

    def test_valid_header(self):
        assert download.parse_content_length('1024') == 1024

    def test_missing_header(self):
        assert download.parse_content_length(None) is None

    def test_malformed_header(self):
        assert download.parse_content_length('abc') is None
        assert download.parse_content_length('-5') is None


class TestDownloadFileWithProgress:
    """Test download, progress and cleanup behavior."""

    @patch('src.melodi.download.requests.get')
    def test_writes_body_to_disk(self, mock_get):
        mock_get.return_value = make_response([b'abc', b'def'], content_length=6)
        log = MagicMock()

        with tempfile.TemporaryDirectory() as tmp_dir:
            dest = Path(tmp_dir) / 'DS.zip'
            result = download.download_file_with_progress('https://x/file.zip', dest, 'DS', log)

            assert result == dest
            assert dest.read_bytes() == b'abcdef'

        assert mock_get.call_args[1]['stream'] is True
        log.task.assert_called_once_with('download DS', 'Downloading...', 6)

    @patch('src.melodi.download.requests.get')
    def test_final_progress_reports_exact_byte_count(self, mock_get):
        mock_get.return_value = make_response([b'a' * 10, b'b' * 5])
        log = MagicMock()

        with tempfile.TemporaryDirectory() as tmp_dir:
            download.download_file_with_progress('https://x', Path(tmp_dir) / 'f', 'DS', log)

        assert log.progress.call_args_list[-1].args == ('download DS', 15, None)

    @patch('src.melodi.download.requests.get')
    def test_progress_is_throttled(self, mock_get):
        mock_get.return_value = make_response([b'x'] * 6, content_length=6)
        log = MagicMock()
        # First reading starts the throttle window, then one reading per chunk
        ticks = iter([0.0, 0.1, 0.2, 0.7, 0.8, 0.9, 1.5])

        with tempfile.TemporaryDirectory() as tmp_dir:
            download.download_file_with_progress(
                'https://x', Path(tmp_dir) / 'f', 'DS', log, clock=lambda: next(ticks)
            )

        reported = [c.args[1] for c in log.progress.call_args_list]
        # Throttled reports at chunk 3 (0.7s) and chunk 6 (1.5s), then the final one
        assert reported == [3, 6, 6]

    @patch('src.melodi.download.requests.get')
    def test_http_error_removes_file(self, mock_get):
        mock_get.return_value = make_response(
            [], status_error=requests.HTTPError('404 Not Found')
        )

        with tempfile.TemporaryDirectory() as tmp_dir:
            dest = Path(tmp_dir) / 'DS.zip'
            with pytest.raises(requests.HTTPError):
                download.download_file_with_progress('https://x', dest, 'DS', MagicMock())
            assert not dest.exists()

    @patch('src.melodi.download.requests.get')
    def test_connection_error_removes_empty_file(self, mock_get):
        mock_get.side_effect = requests.ConnectionError('DNS failure')

        with tempfile.TemporaryDirectory() as tmp_dir:
            dest = Path(tmp_dir) / 'DS.zip'
            with pytest.raises(requests.ConnectionError):
                download.download_file_with_progress('https://x', dest, 'DS', MagicMock())
            assert not dest.exists()

    @patch('src.melodi.download.requests.get')
    def test_error_mid_stream_removes_partial_file(self, mock_get):
        mock_get.return_value = make_response(
            [b'partial'], chunk_error=requests.exceptions.ChunkedEncodingError('reset')
        )

        with tempfile.TemporaryDirectory() as tmp_dir:
            dest = Path(tmp_dir) / 'DS.zip'
            with pytest.raises(requests.exceptions.ChunkedEncodingError):
                download.download_file_with_progress('https://x', dest, 'DS', MagicMock())
            assert not dest.exists()

    @patch('src.melodi.download.requests.get')
    def test_write_error_removes_partial_file(self, mock_get):
        mock_get.return_value = make_response([b'abc'])

        with tempfile.TemporaryDirectory() as tmp_dir:
            dest = Path(tmp_dir) / 'DS.zip'
            real_open = Path.open

            def failing_open(self, *args, **kwargs):
                real_open(self, *args, **kwargs).close()
                fh = MagicMock()
                fh.__enter__.return_value = fh
                fh.__exit__.return_value = False
                fh.write.side_effect = OSError('No space left on device')
                return fh

            with patch.object(Path, 'open', failing_open):
                with pytest.raises(OSError):
                    download.download_file_with_progress('https://x', dest, 'DS', MagicMock())
            assert not dest.exists()

    @patch('src.melodi.download.requests.get')
    def test_passes_query_parameters(self, mock_get):
        mock_get.return_value = make_response([b'x'])

        with tempfile.TemporaryDirectory() as tmp_dir:
            download.download_file_with_progress(
                'https://x', Path(tmp_dir) / 'f', 'DS', MagicMock(), params='GEO=A&GEO=B'
            )

        assert mock_get.call_args[1]['params'] == 'GEO=A&GEO=B'
