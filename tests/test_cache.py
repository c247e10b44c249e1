from statreport.agent.cache import SharedCache
from statreport.agent.models import IpInfo, SysInfo


def test_empty_cache_reads_absent_fields():
    aux = SharedCache().read()
    assert aux.ip_info is None
    assert aux.sys_info is None


def test_fields_are_set_independently():
    cache = SharedCache()
    cache.set_sys_info(SysInfo(host_name="box"))

    aux = cache.read()

    assert aux.sys_info.host_name == "box"
    assert aux.ip_info is None


def test_read_returns_independent_copies():
    cache = SharedCache()
    cache.set_ip_info(IpInfo(city="Berlin"))

    aux = cache.read()
    aux.ip_info.city = "Paris"

    assert cache.read().ip_info.city == "Berlin"


def test_set_replaces_wholesale():
    cache = SharedCache()
    cache.set_ip_info(IpInfo(city="Berlin", isp="A"))
    cache.set_ip_info(IpInfo(city="Paris"))

    assert cache.read().ip_info.isp == ""


def test_contended_read_serves_previous_snapshot():
    cache = SharedCache(read_timeout=0.01)
    cache.set_ip_info(IpInfo(city="Berlin"))
    cache.read()

    cache._lock.acquire()
    try:
        cache._ip_info = IpInfo(city="Paris")
        aux = cache.read()
    finally:
        cache._lock.release()

    assert aux.ip_info.city == "Berlin"


def test_contended_first_read_is_empty():
    cache = SharedCache(read_timeout=0.01)
    cache._lock.acquire()
    try:
        aux = cache.read()
    finally:
        cache._lock.release()

    assert aux.ip_info is None
    assert aux.sys_info is None
