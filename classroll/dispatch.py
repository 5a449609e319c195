"""Confine state changes to one event loop, the application's UI thread."""

import asyncio
import concurrent.futures
import logging
import threading
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, TypeVar

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class UiDispatcher:
	"""Marshals work onto the event loop that owns the application state.

	A toolkit running its own thread hands callbacks and coroutines over
	with call() and submit(); code that mutates shared collections calls
	assert_owner() first.
	"""

	def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
		self._loop = loop
		self._thread_id: Optional[int] = None

	def bind(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
		"""Attach to a loop; defaults to the running one."""
		self._loop = loop or asyncio.get_running_loop()
		self._thread_id = threading.get_ident()
		_LOGGER.debug(f"UI dispatcher bound to thread {self._thread_id}")

	@property
	def loop(self) -> asyncio.AbstractEventLoop:
		if self._loop is None:
			self.bind()
		return self._loop

	def in_owner_thread(self) -> bool:
		"""Whether the caller may touch application state.

		An unbound dispatcher accepts any thread. A bound one accepts only
		the thread running its loop; with an explicit loop that thread is
		learned from the first call made inside that loop.
		"""
		if self._loop is None:
			return True
		if self._thread_id is not None:
			return self._thread_id == threading.get_ident()
		try:
			running = asyncio.get_running_loop()
		except RuntimeError:
			return False
		if running is not self._loop:
			return False
		self._thread_id = threading.get_ident()
		return True

	def assert_owner(self) -> None:
		"""Raise unless called from the thread running the bound loop.

		An unbound dispatcher binds to the running loop on first use.
		"""
		if self._loop is None:
			try:
				self.bind()
			except RuntimeError as err:
				raise RuntimeError("Application state must only be touched from a running event loop") from err
		if not self.in_owner_thread():
			raise RuntimeError("Application state must only be touched from the UI thread")

	def call(self, callback: Callable[..., Any], *args: Any) -> None:
		"""Run a plain callback on the UI thread."""
		if self.in_owner_thread() and self._loop is not None and self._loop.is_running():
			self._loop.call_soon(callback, *args)
		else:
			self.loop.call_soon_threadsafe(callback, *args)

	def submit(self, coro: Awaitable[T]) -> "concurrent.futures.Future[T]":
		"""Run a coroutine on the UI loop from any other thread."""
		return asyncio.run_coroutine_threadsafe(coro, self.loop)


class KeyedSerializer:
	"""One lock per key so operations on the same key run in issue order."""

	def __init__(self) -> None:
		self._locks: Dict[Hashable, asyncio.Lock] = defaultdict(asyncio.Lock)
		self._waiting: Dict[Hashable, int] = defaultdict(int)

	async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
		self._waiting[key] += 1
		try:
			async with self._locks[key]:
				return await factory()
		finally:
			self._waiting[key] -= 1
			if not self._waiting[key]:
				del self._waiting[key]
				self._locks.pop(key, None)
