"""Tests for homemaxx.services.property_data: provider normalization and fallback."""
from unittest.mock import MagicMock, patch

from homemaxx.services import property_data
from homemaxx.services.property_data import (
    empty_property, lookup_property, normalize_attom, normalize_realtymole,
)

ADDRESS = '123 Main Street, Las Vegas, NV 89101'

ATTOM_BODY = {
    'property': [{
        'building': {
            'rooms': {'beds': 3, 'bathsfull': 2, 'bathshalf': 1},
            'size': {'bldgsize': 1850},
            'yearbuilt': 1998,
            'levels': 2,
            'basement': 'None',
            'pooltype': 'Inground',
            'parking': {'garage1cars': 2, 'prkgType': 'Attached Garage'},
        },
        'lot': {'lotsize1': 0.18},
    }],
}


class TestNormalizeAttom:
    """ATTOM expanded profile → common shape."""

    def test_full_profile(self):
        out = normalize_attom(ADDRESS, ATTOM_BODY)
        assert out['provider'] == 'attom'
        assert out['beds'] == 3
        assert out['baths'] == 2.5
        assert out['sqft'] == 1850
        assert out['lot_size'] == 0.18
        assert out['year_built'] == 1998
        assert out['stories'] == 2
        assert out['basement'] is False
        assert out['pool'] == {'has_pool': True, 'type': 'inground'}
        assert out['parking'] == {'covered': True, 'garage_spaces': 2, 'carport': False}

    def test_no_property(self):
        assert normalize_attom(ADDRESS, {'property': []}) == empty_property(ADDRESS, 'attom')


class TestNormalizeRealtyMole:
    """RealtyMole list or object → common shape."""

    def test_list_body(self):
        out = normalize_realtymole(ADDRESS, [{
            'bedrooms': 4, 'bathrooms': 2.5, 'squareFootage': 2200,
            'yearBuilt': 2005, 'parking': '2 Car Garage', 'pool': 'no',
        }])
        assert out['provider'] == 'realtymole'
        assert out['beds'] == 4
        assert out['baths'] == 2.5
        assert out['baths_full'] == 2
        assert out['baths_half'] == 1
        assert out['parking'] == {'covered': True, 'garage_spaces': 2, 'carport': False}
        assert out['pool'] == {'has_pool': False, 'type': None}

    def test_empty_list(self):
        assert normalize_realtymole(ADDRESS, [])['beds'] is None


class TestLookupProperty:
    """Provider order and fallback."""

    def test_attom_answers_first(self):
        with patch.object(property_data, 'lookup_attom', return_value={'provider': 'attom'}), \
                patch.object(property_data, 'lookup_realtymole') as realtymole:
            assert lookup_property(ADDRESS) == {'provider': 'attom'}
        realtymole.assert_not_called()

    def test_attom_error_falls_back(self):
        with patch.object(property_data, 'lookup_attom', side_effect=RuntimeError('503')), \
                patch.object(property_data, 'lookup_realtymole', return_value={'provider': 'realtymole'}):
            assert lookup_property(ADDRESS) == {'provider': 'realtymole'}

    def test_nothing_configured(self):
        with patch.object(property_data, 'ATTOM_API_KEY', None), \
                patch.object(property_data, 'REALTYMOLE_API_KEY', None):
            assert lookup_property(ADDRESS) == empty_property(ADDRESS)

    @patch('homemaxx.services.property_data.requests.get')
    def test_attom_request(self, mock_get):
        resp = MagicMock()
        resp.json.return_value = ATTOM_BODY
        mock_get.return_value = resp
        with patch.object(property_data, 'ATTOM_API_KEY', 'key-1'):
            out = lookup_property(ADDRESS)
        assert out['provider'] == 'attom'
        assert mock_get.call_args[1]['headers']['apikey'] == 'key-1'
        assert mock_get.call_args[1]['timeout'] == 12
