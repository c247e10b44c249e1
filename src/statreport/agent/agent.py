"""
Report Agent - Main Daemon.

Runs two independent loops on one event loop: the scheduler, which builds
and dispatches a record every tick, and the refresh loop, which keeps the
geolocation info in the shared cache up to date.
"""

import asyncio
import logging
import signal
from typing import Awaitable, Callable, Optional

from .assembler import RecordAssembler, build_host_descriptor
from .cache import SharedCache
from .collectors import collect_sys_info, gen_sys_id, get_ip_info, get_network, resolve_destination
from .collectors.system import check_platform
from .config import AGENT_VERSION, SCHEME_HTTP, AgentConfig
from .encoding import select_encoder
from .models import ConnectivityInfo, IpInfo, Record
from .samplers import Samplers
from .sender import Credentials, select_transport

logger = logging.getLogger(__name__)

IpLookup = Callable[[], Awaitable[IpInfo]]


class ReportAgent:
    """
    Main reporting daemon.

    Dispatch is fire-and-forget: each tick spawns a delivery task and the
    scheduler moves on without waiting. In-flight deliveries are unbounded
    unless ``config.max_in_flight`` is set, each one limited only by its own
    request timeout.
    """

    def __init__(
        self,
        config: AgentConfig,
        assembler: RecordAssembler,
        transport,
        encoder,
        cache: SharedCache,
        ip_lookup: Optional[IpLookup] = None,
    ):
        """Initialize the agent from already resolved components."""
        self.config = config
        self.assembler = assembler
        self.transport = transport
        self.encoder = encoder
        self.cache = cache
        self.credentials = Credentials.from_config(config)
        self.ip_lookup = ip_lookup or (lambda: get_ip_info(config.ipv6))

        self._running = False
        self._tasks: list[asyncio.Task] = []
        self._in_flight: set[asyncio.Task] = set()

    @classmethod
    async def create(cls, config: AgentConfig) -> "ReportAgent":
        """
        Resolve everything the loops need.

        Raises ConfigurationError or UnsupportedPlatformError before any
        report is sent.
        """
        check_platform()
        transport = select_transport(config)
        encoder = select_encoder(config.json)
        loop = asyncio.get_running_loop()

        cache = SharedCache()
        sys_info = collect_sys_info(AGENT_VERSION)
        sys_id = gen_sys_id(sys_info)
        cache.set_sys_info(sys_info)
        logger.info(f"sys id: {sys_id}")

        ipv4, ipv6 = await loop.run_in_executor(None, get_network)
        connectivity = ConnectivityInfo(online4=ipv4, online6=ipv6)
        logger.info(f"get_network (ipv4, ipv6) => ({ipv4}, {ipv6})")

        if config.scheme == SCHEME_HTTP:
            host, port = config.destination()
            dest4, dest6 = await loop.run_in_executor(None, resolve_destination, host, port)
            connectivity = connectivity.merge(dest4, dest6)

        samplers = Samplers.from_config(config, (connectivity.online4, connectivity.online6))
        template = build_host_descriptor(config, sys_id)
        assembler = RecordAssembler(
            template=template,
            cache=cache,
            samplers=samplers,
            extra_enabled=not config.disable_extra,
        )
        return cls(config, assembler, transport, encoder, cache)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def start(self):
        """Start sampling and both loops; returns when stopped."""
        logger.info(f"Reporting to {self.config.addr} as {self.credentials.username} ({self.credentials.auth_mode})")

        self._running = True
        self.assembler.samplers.start()

        # Setup signal handlers
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, lambda: asyncio.create_task(self.stop()))
            except NotImplementedError:
                pass

        self._tasks = [asyncio.create_task(self.run_scheduler())]
        if not self.config.disable_extra:
            self._tasks.append(asyncio.create_task(self.run_refresh_loop()))

        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            logger.info("Agent loops cancelled")

    async def stop(self):
        """Stop the loops. Deliveries still in flight are abandoned."""
        logger.info("Stopping agent...")
        self._running = False

        for task in self._tasks:
            task.cancel()

        await self.transport.close()
        self.assembler.samplers.stop()

        logger.info("Agent stopped")

    async def run_scheduler(self, max_ticks: Optional[int] = None):
        """Assemble, dispatch, then sleep a fixed interval, forever."""
        self._running = True
        loop = asyncio.get_running_loop()
        ticks = 0

        while self._running and (max_ticks is None or ticks < max_ticks):
            try:
                record = await loop.run_in_executor(None, self.assembler.assemble)
                self.dispatch(record)
            except Exception as e:
                logger.error(f"Tick failed: {e}")

            ticks += 1
            await asyncio.sleep(self.config.report_interval)

    def dispatch(self, record: Record) -> Optional[asyncio.Task]:
        """Encode the record and spawn its delivery without waiting."""
        cap = self.config.max_in_flight
        if cap is not None and len(self._in_flight) >= cap:
            logger.warning(f"{len(self._in_flight)} deliveries in flight, skipping tick")
            return None

        body, content_type = self.encoder.encode(record)
        task = asyncio.create_task(self._deliver(body, content_type))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _deliver(self, body: bytes, content_type: str):
        try:
            result = await self.transport.deliver(body, content_type, self.credentials)
        except Exception as e:
            logger.error(f"report error => {e}")
            return None

        if result.success:
            logger.info(f"report resp => {result.status_code or 'ok'}")
        else:
            logger.error(f"report error => {result.error}")
        return result

    async def run_refresh_loop(self, max_cycles: Optional[int] = None):
        """Refresh the cached IP info, keeping the old value on failure."""
        self._running = True
        cycles = 0

        while self._running and (max_cycles is None or cycles < max_cycles):
            await self.refresh_ip_info()
            cycles += 1
            if max_cycles is None or cycles < max_cycles:
                await asyncio.sleep(self.config.refresh_interval)

    async def refresh_ip_info(self) -> bool:
        logger.info("get ip info from ip-api.com")
        try:
            ip_info = await self.ip_lookup()
        except Exception as e:
            logger.error(f"refresh_ip_info error => {e}")
            return False

        logger.info(f"refresh_ip_info succ => {ip_info}")
        self.cache.set_ip_info(ip_info)
        return True


def run_agent(config: AgentConfig):
    """Run the agent until interrupted."""

    async def main():
        agent = await ReportAgent.create(config)
        await agent.start()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
