"""Tests for dataset volume estimation."""

from unittest.mock import MagicMock, patch
from urllib.parse import parse_qsl

import requests

from src.melodi import volume


class TestIsSmallDataset:
    """Test fetch path selection threshold."""

    def test_below_threshold_is_small(self):
        assert volume.is_small_dataset(99999) is True

    def test_threshold_selects_bulk_path(self):
        assert volume.is_small_dataset(100000) is False

    def test_zero_count_selects_bulk_path(self):
        assert volume.is_small_dataset(0) is False

    def test_custom_threshold(self):
        assert volume.is_small_dataset(50, threshold=50) is False
        assert volume.is_small_dataset(49, threshold=50) is True


class TestExtractTotalCount:
    """Test count extraction from API payloads."""

    def test_reads_paging_count(self):
        assert volume.extract_total_count({'paging': {'count': 1234}}) == 1234

    def test_missing_paging(self):
        assert volume.extract_total_count({}) == 0
        assert volume.extract_total_count(None) == 0

    def test_non_integer_count(self):
        assert volume.extract_total_count({'paging': {'count': '12'}}) == 0
        assert volume.extract_total_count({'paging': {'count': True}}) == 0


class TestCountRows:
    """Test the count-only request."""

    @patch('src.melodi.volume.requests.get')
    def test_requests_zero_rows_with_total(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.json.return_value = {'paging': {'count': 42}}
        mock_get.return_value = mock_resp

        result = volume.count_rows('DS_X', MagicMock(), {'GEO': ['A', 'B']}, api_base='https://api')

        assert result == 42
        assert mock_get.call_args[0][0] == 'https://api/data/DS_X'
        params = parse_qsl(mock_get.call_args[1]['params'])
        assert ('maxResult', '0') in params
        assert ('totalCount', 'true') in params
        assert ('GEO', 'A') in params and ('GEO', 'B') in params

    @patch('src.melodi.volume.requests.get')
    def test_connection_error_returns_zero(self, mock_get):
        mock_get.side_effect = requests.ConnectionError('down')
        log = MagicMock()

        assert volume.count_rows('DS_X', log) == 0
        log.error.assert_called_once()
        assert 'DS_X' in log.error.call_args[0][0]

    @patch('src.melodi.volume.requests.get')
    def test_http_error_returns_zero(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.raise_for_status.side_effect = requests.HTTPError('500')
        mock_get.return_value = mock_resp
        assert volume.count_rows('DS_X', MagicMock()) == 0

    @patch('src.melodi.volume.requests.get')
    def test_invalid_json_returns_zero(self, mock_get):
        mock_resp = MagicMock()
        mock_resp.json.side_effect = ValueError('not json')
        mock_get.return_value = mock_resp
        assert volume.count_rows('DS_X', MagicMock()) == 0
