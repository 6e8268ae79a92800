"""
Partition Reduction
===================
The numerical core only ever needs two things from a distributed run: a
blocking sum across all mesh partitions and the answer to "am I the
coordinating partition?". Both are provided by a Communicator object that
is passed into the monitor, so the same code runs serially or under MPI.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

COORDINATOR_RANK = 0


class Communicator(ABC):
    """
    Abstract reduce capability.
    """

    @property
    @abstractmethod
    def is_coordinator(self) -> bool:
        """True on the single partition that owns derived results and output."""
        pass

    @property
    def is_parallel(self) -> bool:
        return False

    @abstractmethod
    def sum(self, value: float | npt.NDArray[np.float64]) -> float | npt.NDArray[np.float64]:
        """
        Sum a scalar or array over all partitions.

        Every partition must call this; all of them receive the total.
        """
        pass


class SerialCommunicator(Communicator):
    """Single-process run: the only partition is the coordinator."""

    @property
    def is_coordinator(self) -> bool:
        return True

    def sum(self, value: float | npt.NDArray[np.float64]) -> float | npt.NDArray[np.float64]:
        return value


class MPICommunicator(Communicator):
    """
    Reduction over an mpi4py communicator.

    Rank 0 is the coordinating partition.
    """
    def __init__(self, comm: Any) -> None:
        """
        Args:
            comm: An mpi4py communicator, e.g. MPI.COMM_WORLD.
        """
        self.comm = comm

    @classmethod
    def world(cls) -> MPICommunicator:
        """Wrap MPI.COMM_WORLD."""
        from mpi4py import MPI

        return cls(MPI.COMM_WORLD)

    @property
    def rank(self) -> int:
        return self.comm.Get_rank()

    @property
    def size(self) -> int:
        return self.comm.Get_size()

    @property
    def is_coordinator(self) -> bool:
        return self.rank == COORDINATOR_RANK

    @property
    def is_parallel(self) -> bool:
        return self.size > 1

    def sum(self, value: float | npt.NDArray[np.float64]) -> float | npt.NDArray[np.float64]:
        from mpi4py import MPI

        if np.isscalar(value):
            return self.comm.allreduce(value, op=MPI.SUM)

        send = np.ascontiguousarray(value, dtype=np.float64)
        recv = np.empty_like(send)
        self.comm.Allreduce(send, recv, op=MPI.SUM)
        return recv
