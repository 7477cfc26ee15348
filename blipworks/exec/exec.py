"""
Tick engine for machines.

Each tick runs, in order:
1. Wind: one pass over every pair of adjacent blocks whose out-port and
   in-port face each other
2. Activations: inputs feed, blip spawns spawn, activated copiers emit copies
3. Movement: every blip steps one cell through a pair of matching move holes,
   then the block it lands on may consume it
4. Bookkeeping: the blip arena is compacted and cell occupancy rebuilt

The previous tick's wind state is kept only so that a renderer can
interpolate; the engine never reads it.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Set, Tuple

from ..config import DEFAULT_CONFIG, ExecConfig
from ..machine.block import (
    BlipDuplicator,
    BlipKind,
    BlipSpawn,
    BlipWindSource,
    Block,
    FunnelXY,
    Input,
    Output,
    Pipe,
    PipeMergeXY,
    PipeSplitXY,
    PlacedBlock,
    Solid,
)
from ..machine.grid import Dir3, Point3, shift
from ..machine.machine import BlockIndex, Blocks, Machine
from ..util.arena import Arena

logger = logging.getLogger(__name__)

BlipIndex = int

# Blocks a player may drop a blip into by hand
PLAYER_SPAWN_BLOCKS = (Pipe, PipeSplitXY, PipeMergeXY, FunnelXY)

# Blocks that act on a blip entering them instead of letting it sit
ARRIVAL_BLOCKS = (Solid, BlipDuplicator, BlipWindSource, Output)


@dataclass
class WindState:
    """Directions from which a block receives wind in the current tick."""
    dirs_in: Set[Dir3] = field(default_factory=set)

    def wind_in(self, direction: Dir3) -> bool:
        return direction in self.dirs_in

    def set_wind_in(self, direction: Dir3) -> None:
        self.dirs_in.add(direction)

    def any_in(self) -> bool:
        return bool(self.dirs_in)

    def __repr__(self) -> str:
        dirs = ", ".join(d.name for d in Dir3 if d in self.dirs_in)
        return f"WindState({dirs})"


@dataclass
class Blip:
    """
    A token moving through the machine.

    `old_position` is None for a blip that has just been spawned in place.
    """
    kind: BlipKind
    position: Point3
    old_position: Optional[Point3] = None


@dataclass
class BlipState:
    """Per-block occupancy: the blip sitting on the block, if any."""
    blip_index: Optional[BlipIndex] = None


@dataclass
class OutputObservation:
    """A blip consumed by an output, with the kind the output expected."""
    tick: int
    output_index: int
    kind: BlipKind
    expected: Optional[BlipKind]

    @property
    def matched(self) -> bool:
        return self.expected is not None and self.kind == self.expected


class Exec:
    """
    Runs a machine tick by tick.

    The engine works on its own compacted copy of the machine, so slot
    indices are dense and `wind_state`, `old_wind_state` and `blip_state`
    are plain lists indexed by slot.
    """

    def __init__(self, machine: Machine, config: Optional[ExecConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.debug = self.config.debug
        self.debug_log: List[str] = []

        self.machine = machine.copy()
        self.machine.gc()

        self.cur_tick = 0
        num_blocks = self.machine.num_blocks()
        self.wind_state: List[WindState] = [WindState() for _ in range(num_blocks)]
        self.old_wind_state: List[WindState] = [WindState() for _ in range(num_blocks)]
        self.blip_state: List[BlipState] = [BlipState() for _ in range(num_blocks)]
        self.blips: Arena = Arena()

        self.output_observations: List[OutputObservation] = []
        # Remaining expected kinds per output, keyed by block slot
        self._expected_outputs: Dict[BlockIndex, Deque[BlipKind]] = {}

        self._reset_block_state()
        logger.info(f"Starting execution of {self.machine}")

    def _reset_block_state(self) -> None:
        """Put every activatable block into its idle state and seed level data."""
        level = self.machine.level

        for index, (_, placed) in self.machine.iter_blocks():
            block = placed.block

            if isinstance(block, (BlipSpawn, BlipDuplicator)):
                block.activated = None
            elif isinstance(block, BlipWindSource):
                block.activated = False
            elif isinstance(block, Input):
                block.activated = None
                if level is not None:
                    feeds = level.spec.inputs
                    block.inputs = list(feeds[block.index]) if block.index < len(feeds) else []
            elif isinstance(block, Output):
                expected: Deque[BlipKind] = deque()
                if level is not None:
                    sequences = level.spec.outputs
                    if block.index < len(sequences):
                        expected.extend(sequences[block.index])
                    block.expected_next_kind = expected.popleft() if expected else None
                self._expected_outputs[index] = expected

    def _log(self, message: str) -> None:
        if self.debug:
            self.debug_log.append(message)

    def update(self) -> None:
        """Run one tick."""
        self._log(f"--- Tick {self.cur_tick} ---")

        self.old_wind_state = self.wind_state
        self.wind_state = self.compute_wind_state()
        self._finish_wind_pulses()

        spawned = self._run_activations()

        self._move_blips(spawned)
        self._compact_blips()

        self.cur_tick += 1

    # Wind

    @staticmethod
    def blows_wind(block: Block) -> bool:
        """Are the block's out-ports open this tick?"""
        if isinstance(block, BlipWindSource):
            return block.activated
        return True

    def compute_wind_state(self) -> List[WindState]:
        """
        Wind state of the current topology.

        A block receives wind from a neighbor whenever the neighbor has an
        out-port facing one of its in-ports. This is a single pass over
        adjacent pairs, not a flood fill from the wind sources, and nothing
        here depends on previous ticks.
        """
        wind_state = [WindState() for _ in range(self.machine.num_blocks())]

        for index, (pos, placed) in self.machine.iter_blocks():
            if not Exec.blows_wind(placed.block):
                continue

            for direction, neighbor_index in self.machine.iter_neighbors(pos):
                if not placed.has_wind_hole_out(direction):
                    continue
                _, neighbor = self.machine.block_at_index(neighbor_index)
                if neighbor.has_wind_hole_in(direction.invert()):
                    wind_state[neighbor_index].set_wind_in(direction.invert())

        return wind_state

    def _finish_wind_pulses(self) -> None:
        for _, (pos, placed) in self.machine.iter_blocks():
            if isinstance(placed.block, BlipWindSource) and placed.block.activated:
                self._log(f"  Wind pulse at {pos}")
                placed.block.activated = False

    def wind_out(self, index: BlockIndex, direction: Dir3) -> bool:
        """Does the block in slot `index` blow wind into its neighbor at `direction`?"""
        pos = self.machine.block_pos_at_index(index)
        neighbor_index = self.machine.get_index_at_pos(shift(pos, direction))
        if neighbor_index is None:
            return False
        return self.wind_state[neighbor_index].wind_in(direction.invert())

    # Activations

    def _run_activations(self) -> Set[BlipIndex]:
        """Fire activatable blocks. Returns the blips spawned this tick."""
        spawned: Set[BlipIndex] = set()

        # Copiers fire with what activated them on an earlier tick; a copy
        # landing in another copier only takes effect on the next tick
        firing: List[Tuple[Point3, PlacedBlock, BlipKind]] = []
        for _, (pos, placed) in self.machine.iter_blocks():
            block = placed.block
            if isinstance(block, BlipDuplicator) and block.activated is not None:
                firing.append((pos, placed, block.activated))
                block.activated = None

        for index, (pos, placed) in self.machine.iter_blocks():
            block = placed.block

            if isinstance(block, BlipSpawn):
                block.activated = None
                if block.num_spawns is not None and block.num_spawns <= 0:
                    continue
                blip_index = self._spawn(block.kind, pos)
                if blip_index is not None:
                    spawned.add(blip_index)
                    block.activated = self.cur_tick
                    if block.num_spawns is not None:
                        block.num_spawns -= 1

            elif isinstance(block, Input):
                block.activated = None
                # The feed waits while the previous blip still sits on the input
                if not block.inputs or self.blip_state[index].blip_index is not None:
                    continue
                kind = block.inputs.pop(0)
                if kind is None:
                    continue
                blip_index = self._spawn(kind, pos)
                if blip_index is not None:
                    spawned.add(blip_index)
                    block.activated = kind

        for pos, placed, kind in firing:
            for local_dir in BlipDuplicator.COPY_DIRS:
                direction = placed.rotated_dir_xy(local_dir)
                blip_index = self._emit_copy(kind, pos, placed, direction)
                if blip_index is not None:
                    spawned.add(blip_index)

        return spawned

    def _spawn(self, kind: BlipKind, pos: Point3) -> Optional[BlipIndex]:
        blip_index = Exec.try_spawn_blip(
            False, kind, pos, self.machine.blocks, self.blip_state, self.blips
        )
        if blip_index is not None:
            self._log(f"  Spawned {kind.value} blip {blip_index} at {pos}")
        return blip_index

    def _emit_copy(
        self, kind: BlipKind, pos: Point3, placed: PlacedBlock, direction: Dir3
    ) -> Optional[BlipIndex]:
        """
        Send a copy of a blip into the neighbor of `pos` towards `direction`.

        A copy entering a block that acts on arriving blips (an output, a
        solid, a copier or a blipped wind spawn) takes that effect right away
        and is not kept.

        Returns:
            Index of the copy if it stays in the machine, otherwise None
        """
        target = shift(pos, direction)
        neighbor = self.machine.get_block_at_pos(target)
        if not placed.has_move_hole(direction) or neighbor is None:
            return None
        _, neighbor_placed = neighbor
        if not neighbor_placed.has_move_hole(direction.invert()):
            return None

        if isinstance(neighbor_placed.block, ARRIVAL_BLOCKS):
            blip_index = self.blips.add(Blip(kind, target, old_position=pos))
            self._log(f"  Copy of {kind.value} sent into {neighbor_placed.block.name} at {target}")
            self._arrive(blip_index, self.blips[blip_index])
            return None

        blip_index = self._spawn(kind, target)
        if blip_index is not None:
            self.blips[blip_index].old_position = pos
        return blip_index

    @staticmethod
    def accepts_new_blip(block: Block, is_player_triggered: bool) -> bool:
        """Can a blip be introduced into `block` without moving in?"""
        if is_player_triggered:
            return isinstance(block, PLAYER_SPAWN_BLOCKS)
        return not isinstance(block, (Solid, Output))

    @staticmethod
    def try_spawn_blip(
        is_player_triggered: bool,
        kind: BlipKind,
        pos: Point3,
        blocks: Blocks,
        blip_state: List[BlipState],
        blips: Arena,
    ) -> Optional[BlipIndex]:
        """
        Spawn a blip at `pos` if possible.

        Nothing happens if there is no block at `pos`, the block does not take
        fresh blips, or a blip already sits there.

        Returns:
            Index of the new blip, or None if nothing was spawned
        """
        index = blocks.indices.get(tuple(pos))
        if index is None:
            return None

        _, placed = blocks.data[index]
        if not Exec.accepts_new_blip(placed.block, is_player_triggered):
            return None
        if blip_state[index].blip_index is not None:
            return None

        blip_index = blips.add(Blip(kind, tuple(pos)))
        blip_state[index].blip_index = blip_index
        return blip_index

    def spawn_blip(self, kind: BlipKind, pos: Point3) -> Optional[BlipIndex]:
        """Manual spawn by the player between ticks."""
        blip_index = Exec.try_spawn_blip(
            True, kind, pos, self.machine.blocks, self.blip_state, self.blips
        )
        if blip_index is not None:
            logger.info(f"Player spawned {kind.value} blip at {pos}")
        return blip_index

    # Movement

    def _wind_rank(self, index: BlockIndex, neighbor_index: BlockIndex, direction: Dir3) -> int:
        """0 downwind, 1 no net wind, 2 upwind."""
        pushed = self.wind_state[neighbor_index].wind_in(direction.invert())
        pulled = self.wind_state[index].wind_in(direction)
        if pushed and not pulled:
            return 0
        if pulled and not pushed:
            return 2
        return 1

    def find_move_dir(self, blip: Blip) -> Optional[Dir3]:
        """
        Direction in which a blip leaves its block, or None if it is stuck.

        A blip can step into any neighbor through a pair of matching move
        holes, except straight back to the cell it came from. Downwind steps
        are preferred over steps without net wind, which are preferred over
        upwind steps; remaining ties go to the first direction in `Dir3` order.
        """
        index = self.machine.get_index_at_pos(blip.position)
        if index is None:
            return None

        pos, placed = self.machine.block_at_index(index)
        best: Optional[Dir3] = None
        best_rank = 0
        for direction, neighbor_index in self.machine.iter_neighbors(pos):
            if shift(pos, direction) == blip.old_position:
                continue
            if not placed.has_move_hole(direction):
                continue
            _, neighbor = self.machine.block_at_index(neighbor_index)
            if not neighbor.has_move_hole(direction.invert()):
                continue

            rank = self._wind_rank(index, neighbor_index, direction)
            if best is None or rank < best_rank:
                best, best_rank = direction, rank

        return best

    def _move_blips(self, spawned: Set[BlipIndex]) -> None:
        """
        Move every blip that was not spawned this tick.

        Blips are processed in slot order. The first blip to move into a cell
        claims it; later blips heading there are merged away. Cells of blips
        spawned this tick are claimed up front.
        """
        claimed: Dict[Point3, BlipIndex] = {
            self.blips[blip_index].position: blip_index for blip_index in spawned
        }

        for blip_index, blip in list(self.blips.iter()):
            if blip_index in spawned:
                continue

            direction = self.find_move_dir(blip)
            if direction is None:
                self._log(f"  Blip {blip_index} stuck at {blip.position}, removed")
                self.blips.remove(blip_index)
                continue

            target = shift(blip.position, direction)
            if target in claimed:
                self._log(f"  Blip {blip_index} merged into blip {claimed[target]} at {target}")
                self.blips.remove(blip_index)
                continue

            self._log(f"  Moved blip {blip_index} {blip.position} -> {target}")
            blip.old_position = blip.position
            blip.position = target

            if self._arrive(blip_index, blip):
                claimed[target] = blip_index

    def _arrive(self, blip_index: BlipIndex, blip: Blip) -> bool:
        """Apply the effect of the block a blip moved into. Returns whether the blip survives."""
        index = self.machine.get_index_at_pos(blip.position)
        block = self.machine.block_at_index(index)[1].block

        if isinstance(block, Solid):
            self._log(f"  Blip {blip_index} absorbed at {blip.position}")
        elif isinstance(block, BlipDuplicator):
            if block.accepts(blip.kind) and block.activated is None:
                block.activated = blip.kind
                self._log(f"  Copier at {blip.position} activated by {blip.kind.value}")
        elif isinstance(block, BlipWindSource):
            block.activated = True
        elif isinstance(block, Output):
            self._consume_output(index, block, blip.kind)
        else:
            return True

        self.blips.remove(blip_index)
        return False

    def _consume_output(self, index: BlockIndex, block: Output, kind: BlipKind) -> None:
        observation = OutputObservation(
            tick=self.cur_tick,
            output_index=block.index,
            kind=kind,
            expected=block.expected_next_kind,
        )
        self.output_observations.append(observation)

        if observation.matched:
            expected = self._expected_outputs.setdefault(index, deque())
            block.expected_next_kind = expected.popleft() if expected else None
            self._log(f"  Output {block.index} received {kind.value}")
        else:
            expected_str = observation.expected.value if observation.expected else "nothing"
            logger.warning(
                f"Output {block.index} received {kind.value} at tick {self.cur_tick}, "
                f"expected {expected_str}"
            )

    def _compact_blips(self) -> None:
        self.blips.gc()

        for state in self.blip_state:
            state.blip_index = None

        for blip_index, blip in self.blips.iter():
            index = self.machine.get_index_at_pos(blip.position)
            assert index is not None, f"Blip {blip_index} at {blip.position} is not on a block"
            assert self.blip_state[index].blip_index is None, f"Two blips at {blip.position}"
            self.blip_state[index].blip_index = blip_index

    # Observations

    def blip_at(self, pos: Point3) -> Optional[Blip]:
        index = self.machine.get_index_at_pos(pos)
        if index is None:
            return None
        blip_index = self.blip_state[index].blip_index
        return self.blips[blip_index] if blip_index is not None else None

    def iter_blips(self) -> List[Tuple[BlipIndex, Blip]]:
        return list(self.blips.iter())

    @property
    def has_output_mismatch(self) -> bool:
        return any(not observation.matched for observation in self.output_observations)

    def outputs_complete(self) -> bool:
        """Every output has received its whole expected sequence, without mismatch."""
        if self.has_output_mismatch:
            return False
        for index, _, block in self.machine.outputs():
            if block.expected_next_kind is not None:
                return False
            if self._expected_outputs.get(index):
                return False
        return True
