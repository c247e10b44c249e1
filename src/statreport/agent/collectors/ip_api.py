"""Geolocation lookup against ip-api.com."""

import asyncio
import logging
import socket

import aiohttp

from ..errors import IpInfoError
from ..models import IpInfo

logger = logging.getLogger(__name__)

IP_API_URL = "http://ip-api.com/json"
IP_API_FIELDS = "status,message,continent,country,regionName,city,isp,org,as,asname,lat,lon,timezone,query"
LOOKUP_TIMEOUT = 10


def parse_ip_info(data: dict) -> IpInfo:
    """Convert an ip-api.com reply into IpInfo."""
    if data.get("status") != "success":
        raise IpInfoError(f"ip-api.com lookup failed: {data.get('message', 'unknown error')}")
    return IpInfo(
        query=data.get("query", ""),
        continent=data.get("continent", ""),
        country=data.get("country", ""),
        region_name=data.get("regionName", ""),
        city=data.get("city", ""),
        isp=data.get("isp", ""),
        org=data.get("org", ""),
        as_=data.get("as", ""),
        asname=data.get("asname", ""),
        lat=float(data.get("lat") or 0.0),
        lon=float(data.get("lon") or 0.0),
        timezone=data.get("timezone", ""),
    )


async def get_ip_info(ipv6: bool = False, url: str = IP_API_URL) -> IpInfo:
    """Look up the public address of this host."""
    family = socket.AF_INET6 if ipv6 else socket.AF_INET
    connector = aiohttp.TCPConnector(family=family)
    timeout = aiohttp.ClientTimeout(total=LOOKUP_TIMEOUT)

    try:
        async with aiohttp.ClientSession(connector=connector, timeout=timeout) as session:
            async with session.get(url, params={"fields": IP_API_FIELDS}) as response:
                if response.status != 200:
                    raise IpInfoError(f"ip-api.com returned HTTP {response.status}")
                data = await response.json(content_type=None)
    except asyncio.TimeoutError as e:
        raise IpInfoError("ip-api.com lookup timed out") from e
    except aiohttp.ClientError as e:
        raise IpInfoError(f"ip-api.com lookup failed: {e}") from e

    return parse_ip_info(data)
