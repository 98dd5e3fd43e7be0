"""
Property facts for funnel autofill: ATTOM first, RealtyMole as the fallback.

Both providers are normalized to one shape:

    {provider, address, beds, baths_full, baths_half, baths, sqft, lot_size,
     year_built, stories, basement, pool: {has_pool, type},
     parking: {covered, garage_spaces, carport}}

A provider that is unconfigured returns None and the next one is tried; one
that errors is logged and skipped. No provider answering yields the empty
shape with provider='none'.
"""
import logging
import re
from typing import Any, Dict, Optional

import requests

from homemaxx.config import (
    ATTOM_API_KEY, ATTOM_API_URL, PROPERTY_LOOKUP_TIMEOUT,
    REALTYMOLE_API_KEY, REALTYMOLE_API_URL,
)
from homemaxx.services.circuit_breaker import get_breaker

logger = logging.getLogger('services.property_data')

_CAR_COUNT_RE = re.compile(r'(\d+)\s*car')


def empty_property(address: str, provider: str = 'none') -> Dict[str, Any]:
    return {
        'provider': provider,
        'address': address,
        'beds': None,
        'baths_full': None,
        'baths_half': None,
        'baths': None,
        'sqft': None,
        'lot_size': None,
        'year_built': None,
        'stories': None,
        'basement': None,
        'pool': {'has_pool': None, 'type': None},
        'parking': {'covered': None, 'garage_spaces': None, 'carport': None},
    }


def _num(value):
    if value is None or value == '':
        return None
    try:
        return float(value) if '.' in str(value) else int(value)
    except (TypeError, ValueError):
        return None


def _first_num(*values):
    for value in values:
        parsed = _num(value)
        if parsed is not None:
            return parsed
    return None


def _pool(raw):
    if raw is None or raw == '':
        return {'has_pool': None, 'type': None}
    value = str(raw).lower()
    has_pool = value not in ('none', 'no', '')
    return {'has_pool': has_pool, 'type': value if has_pool else None}


# ── ATTOM ────────────────────────────────────────────────────────────────────

def normalize_attom(address: str, data: Dict[str, Any]) -> Dict[str, Any]:
    properties = (data or {}).get('property') or []
    if not properties:
        return empty_property(address, 'attom')
    prop = properties[0]

    building = prop.get('building') or {}
    rooms = building.get('rooms') or {}
    size = building.get('size') or {}
    lot = prop.get('lot') or {}
    parking = building.get('parking') or {}
    summary = prop.get('summary') or {}

    out = empty_property(address, 'attom')
    out['beds'] = _num(rooms.get('beds'))
    out['baths_full'] = _num(rooms.get('bathsfull'))
    out['baths_half'] = _num(rooms.get('bathshalf'))
    if out['baths_full'] is not None or out['baths_half'] is not None:
        out['baths'] = (out['baths_full'] or 0) + (out['baths_half'] or 0) * 0.5
    out['sqft'] = _first_num(size.get('bldgsize'), size.get('livingsize'))
    out['lot_size'] = _first_num(lot.get('lotsize1'), lot.get('lotSize'))
    out['year_built'] = _first_num(building.get('yearbuilt'), summary.get('yearbuilt'))
    out['stories'] = _num(building.get('levels'))

    basement = building.get('basement')
    if isinstance(basement, str):
        out['basement'] = basement.lower() not in ('none', 'no')

    out['pool'] = _pool(building.get('pooltype') or building.get('pool'))

    garage_spaces = _first_num(parking.get('garage1cars'), parking.get('prkgSize'))
    covered = carport = None
    if parking.get('prkgType'):
        kind = str(parking['prkgType']).lower()
        carport = 'carport' in kind
        if 'garage' in kind:
            covered = True
    if garage_spaces:
        covered = True
    out['parking'] = {'covered': covered, 'garage_spaces': garage_spaces, 'carport': carport}
    return out


def lookup_attom(address: str) -> Optional[Dict[str, Any]]:
    if not ATTOM_API_KEY:
        return None
    cb = get_breaker('attom')
    response = cb.call_http(
        requests.get, ATTOM_API_URL,
        params={'address': address},
        headers={'apikey': ATTOM_API_KEY, 'Accept': 'application/json'},
        timeout=PROPERTY_LOOKUP_TIMEOUT,
    )
    return normalize_attom(address, response.json())


# ── RealtyMole ───────────────────────────────────────────────────────────────

def normalize_realtymole(address: str, data: Any) -> Dict[str, Any]:
    if isinstance(data, list):
        prop = data[0] if data else None
    else:
        prop = (data or {}).get('property')
    if not prop:
        return empty_property(address, 'realtymole')

    out = empty_property(address, 'realtymole')
    out['beds'] = _first_num(prop.get('bedrooms'), prop.get('numberBedrooms'))
    baths = _first_num(prop.get('bathrooms'), prop.get('numberBathrooms'))
    if baths is not None:
        out['baths'] = baths
        out['baths_full'] = int(baths)
        out['baths_half'] = 1 if baths - int(baths) >= 0.5 else 0
    out['sqft'] = _first_num(prop.get('squareFootage'), prop.get('livingArea'))
    out['lot_size'] = _num(prop.get('lotSize'))
    out['year_built'] = _num(prop.get('yearBuilt'))
    out['stories'] = _num(prop.get('stories'))

    if prop.get('parking'):
        kind = str(prop['parking']).lower()
        match = _CAR_COUNT_RE.search(kind)
        out['parking'] = {
            'covered': 'garage' in kind or 'covered' in kind,
            'garage_spaces': int(match.group(1)) if match else None,
            'carport': 'carport' in kind,
        }

    if prop.get('pool') is not None:
        out['pool'] = _pool(prop['pool'])
    return out


def lookup_realtymole(address: str) -> Optional[Dict[str, Any]]:
    if not REALTYMOLE_API_KEY:
        return None
    cb = get_breaker('realtymole')
    response = cb.call_http(
        requests.get, REALTYMOLE_API_URL,
        params={'address': address, 'apiKey': REALTYMOLE_API_KEY},
        timeout=PROPERTY_LOOKUP_TIMEOUT,
    )
    return normalize_realtymole(address, response.json())


def lookup_property(address: str) -> Dict[str, Any]:
    """Try each provider in order; the first non-None answer wins."""
    for name, provider in (('attom', lookup_attom), ('realtymole', lookup_realtymole)):
        try:
            result = provider(address)
        except Exception as e:
            logger.warning("Property lookup via %s failed for '%s': %s", name, address, e)
            continue
        if result is not None:
            logger.info("Property lookup for '%s' answered by %s", address, name)
            return result
    return empty_property(address)
