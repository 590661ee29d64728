"""Runtime statistics reported over the serial port."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Union

KB = 1024
# How often (in update cycles) the stats are emitted.
FREQ = 60

_U16_MAX = 0xFFFF
_U32_MAX = 0xFFFF_FFFF


class Callback(enum.Enum):
    UPDATE = "update"
    RENDER = "render"


@dataclass(frozen=True)
class Fuel:
    min: int
    max: int
    mean: int
    var: float
    calls: int


@dataclass(frozen=True)
class Cpu:
    busy_ns: int
    lag_ns: int
    total_ns: int


@dataclass(frozen=True)
class Memory:
    pages: int
    last_one: int
    reads: int = 0
    writes: int = 0
    max: int = 0


@dataclass(frozen=True)
class CpuResponse:
    cpu: Cpu


@dataclass(frozen=True)
class FuelResponse:
    callback: Callback
    fuel: Fuel


@dataclass(frozen=True)
class MemoryResponse:
    memory: Memory


StatsResponse = Union[CpuResponse, FuelResponse, MemoryResponse]


class CallbackFuel:
    """Running statistics of the fuel spent by one callback."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.min: Optional[int] = None
        self.max = 0
        self.sum = 0
        self.mean = 0.0
        self.m2 = 0.0
        self.count = 0

    def add(self, v: int) -> None:
        self.min = v if self.min is None else min(self.min, v)
        self.max = max(self.max, v)
        self.sum += v
        self.count += 1
        # Welford's online variance.
        delta = v - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (v - self.mean)

    def as_fuel(self) -> Fuel:
        if self.count == 0:
            return Fuel(min=0, max=0, mean=0, var=0.0, calls=0)
        m2 = 0.0 if self.count <= 1 else self.m2
        return Fuel(
            min=self.min or 0,
            max=self.max,
            mean=self.sum // self.count,
            var=m2 / self.count,
            calls=self.count,
        )


class StatsTracker:
    """Collects runtime stats and emits one report every few frames.

    Times are integer nanoseconds.
    """

    def __init__(self, now: int) -> None:
        self.frame = 0
        self.update_fuel = CallbackFuel()
        self.render_fuel = CallbackFuel()
        self.synced = now
        self.delays = 0
        self.lags = 0
        self.pages = 0
        self.last_one = 0

    def analyze_memory(self, data: bytes) -> None:
        self.pages = (len(data) // (64 * KB)) & _U16_MAX
        if self.frame % FREQ != 10:
            return
        used = len(bytes(data).rstrip(b"\x00"))
        if used:
            self.last_one = used

    def as_message(self, now: int) -> Optional[StatsResponse]:
        self.frame = (self.frame + 1) & _U32_MAX
        # Skip the first period: there are not enough stats yet.
        if self.frame < FREQ:
            return None
        phase = self.frame % FREQ
        if phase == 3:
            cpu = self._as_cpu(now)
            self.delays = 0
            self.lags = 0
            self.synced = now
            return CpuResponse(cpu)
        if phase == 5:
            fuel = self.update_fuel.as_fuel()
            self.update_fuel.reset()
            return FuelResponse(Callback.UPDATE, fuel)
        if phase == 7:
            fuel = self.render_fuel.as_fuel()
            self.render_fuel.reset()
            return FuelResponse(Callback.RENDER, fuel)
        if phase == 12:
            return MemoryResponse(Memory(pages=self.pages, last_one=self.last_one))
        return None

    def _as_cpu(self, now: int) -> Cpu:
        total = now - self.synced
        busy = max(total - self.delays, 0)
        return Cpu(
            busy_ns=min(self.lags + busy, _U32_MAX),
            lag_ns=self.lags,
            total_ns=total,
        )