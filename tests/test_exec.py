"""Tests for the tick engine."""

import pytest
from blipworks.config import ExecConfig
from blipworks.exec.exec import Blip, Exec, WindState
from blipworks.machine.grid import Dir3
from blipworks.machine.block import (
    BlipKind,
    BlipDuplicator,
    BlipSpawn,
    BlipWindSource,
    FunnelXY,
    Input,
    Output,
    Pipe,
    PipeMergeXY,
    PlacedBlock,
    Solid,
    WindSource,
)
from blipworks.machine.level import Level, LevelSpec
from blipworks.machine.machine import Machine


def pipe_x():
    return PlacedBlock(Pipe(Dir3.X_NEG, Dir3.X_POS))


def pipe_y():
    return PlacedBlock(Pipe(Dir3.Y_NEG, Dir3.Y_POS))


def build(size, blocks):
    return Machine.new_from_block_data(size, [(pos, placed) for pos, placed in blocks])


def wind_at(exec_, pos):
    return exec_.wind_state[exec_.machine.get_index_at_pos(pos)]


def block_at(exec_, pos):
    return exec_.machine.get_block_at_pos(pos)[1].block


def pipe_line(length):
    """Wind source at the origin followed by `length` pipes along X."""
    blocks = [((0, 0, 0), PlacedBlock(WindSource()))]
    blocks += [((x, 0, 0), pipe_x()) for x in range(1, length + 1)]
    return build((length + 1, 1, 1), blocks)


class TestWind:
    """Tests for wind propagation."""

    def test_straight_pipe(self):
        exec_ = Exec(pipe_line(2))
        exec_.update()

        first = exec_.machine.get_index_at_pos((1, 0, 0))
        assert wind_at(exec_, (1, 0, 0)).wind_in(Dir3.X_NEG)
        assert exec_.wind_out(first, Dir3.X_POS)
        assert wind_at(exec_, (2, 0, 0)).wind_in(Dir3.X_NEG)
        assert not wind_at(exec_, (0, 0, 0)).any_in()
        assert exec_.cur_tick == 1

    def test_connected_pipes_without_source(self):
        machine = build((2, 1, 1), [((0, 0, 0), pipe_x()), ((1, 0, 0), pipe_x())])
        exec_ = Exec(machine)
        exec_.update()

        assert wind_at(exec_, (1, 0, 0)).wind_in(Dir3.X_NEG)
        assert wind_at(exec_, (0, 0, 0)).wind_in(Dir3.X_POS)
        assert exec_.wind_out(exec_.machine.get_index_at_pos((0, 0, 0)), Dir3.X_POS)

    def test_pipe_blows_back_into_pipe(self):
        exec_ = Exec(pipe_line(2))
        exec_.update()

        assert wind_at(exec_, (1, 0, 0)).wind_in(Dir3.X_POS)
        assert not wind_at(exec_, (2, 0, 0)).wind_in(Dir3.X_POS)

    def test_wind_out(self):
        exec_ = Exec(pipe_line(2))
        exec_.update()
        index = exec_.machine.get_index_at_pos((1, 0, 0))

        assert exec_.wind_out(index, Dir3.X_POS)
        assert not exec_.wind_out(index, Dir3.X_NEG)
        assert not exec_.wind_out(index, Dir3.Y_POS)

    def test_wind_is_recomputed_each_tick(self):
        exec_ = Exec(pipe_line(3))
        exec_.update()
        first = exec_.compute_wind_state()
        second = exec_.compute_wind_state()

        assert first == second
        assert first == exec_.wind_state

    def test_old_wind_state(self):
        exec_ = Exec(pipe_line(2))
        exec_.update()

        assert all(state == WindState() for state in exec_.old_wind_state)

        exec_.update()
        assert exec_.old_wind_state[exec_.machine.get_index_at_pos((2, 0, 0))].wind_in(Dir3.X_NEG)

    def test_ports_not_facing_carry_no_wind(self):
        machine = build((3, 2, 1), [
            ((0, 0, 0), PlacedBlock(WindSource())),
            ((1, 0, 0), pipe_y()),
            ((2, 1, 0), pipe_x()),
        ])
        exec_ = Exec(machine)
        exec_.update()

        assert not wind_at(exec_, (1, 0, 0)).any_in()
        assert not wind_at(exec_, (2, 1, 0)).any_in()

    def test_funnel_blocks_backward_wind(self):
        machine = build((3, 1, 1), [
            ((0, 0, 0), pipe_x()),
            ((1, 0, 0), PlacedBlock(FunnelXY(), rotation_xy=1)),
            ((2, 0, 0), PlacedBlock(WindSource())),
        ])
        exec_ = Exec(machine)
        exec_.update()

        # Rotated so wind may only pass from X_NEG to X_POS
        assert not wind_at(exec_, (1, 0, 0)).wind_in(Dir3.X_POS)
        assert wind_at(exec_, (1, 0, 0)).wind_in(Dir3.X_NEG)
        assert not wind_at(exec_, (0, 0, 0)).any_in()

    def test_funnel_passes_forward_wind(self):
        machine = build((3, 1, 1), [
            ((0, 0, 0), PlacedBlock(WindSource())),
            ((1, 0, 0), PlacedBlock(FunnelXY(), rotation_xy=1)),
            ((2, 0, 0), pipe_x()),
        ])
        exec_ = Exec(machine)
        exec_.update()

        assert wind_at(exec_, (1, 0, 0)).wind_in(Dir3.X_NEG)
        assert wind_at(exec_, (2, 0, 0)).wind_in(Dir3.X_NEG)

    def test_duplicator_swallows_wind(self):
        machine = build((3, 1, 1), [
            ((0, 0, 0), PlacedBlock(WindSource())),
            ((1, 0, 0), PlacedBlock(BlipDuplicator())),
            ((2, 0, 0), pipe_x()),
        ])
        exec_ = Exec(machine)
        exec_.update()

        assert wind_at(exec_, (1, 0, 0)).wind_in(Dir3.X_NEG)
        assert not wind_at(exec_, (2, 0, 0)).any_in()


class TestMovement:
    """Tests for blip movement."""

    def test_blip_moves_away_from_source(self):
        exec_ = Exec(pipe_line(3))
        assert exec_.spawn_blip(BlipKind.A, (1, 0, 0)) is not None

        exec_.update()
        blip = exec_.blip_at((2, 0, 0))
        assert blip is not None
        assert blip.old_position == (1, 0, 0)
        assert exec_.blip_at((1, 0, 0)) is None

        exec_.update()
        assert exec_.blip_at((3, 0, 0)).kind == BlipKind.A

        # Nowhere left to go
        exec_.update()
        assert exec_.iter_blips() == []

    def test_blip_moves_without_source(self):
        machine = build((2, 1, 1), [((0, 0, 0), pipe_x()), ((1, 0, 0), pipe_x())])
        exec_ = Exec(machine)
        exec_.spawn_blip(BlipKind.A, (0, 0, 0))
        exec_.update()

        blip = exec_.blip_at((1, 0, 0))
        assert blip is not None
        assert blip.old_position == (0, 0, 0)

        # The only open neighbor is where it came from
        exec_.update()
        assert exec_.iter_blips() == []

    def test_no_net_wind_falls_back_to_direction_order(self):
        machine = build((3, 1, 1), [((x, 0, 0), pipe_x()) for x in range(3)])
        exec_ = Exec(machine)
        exec_.spawn_blip(BlipKind.A, (1, 0, 0))
        exec_.update()

        assert exec_.blip_at((0, 0, 0)) is not None
        assert exec_.blip_at((2, 0, 0)) is None

    def test_find_move_dir_prefers_downwind(self):
        exec_ = Exec(pipe_line(2))
        exec_.update()
        blip = Blip(BlipKind.A, (1, 0, 0))

        assert exec_.find_move_dir(blip) == Dir3.X_POS
        blip.old_position = (2, 0, 0)
        assert exec_.find_move_dir(blip) == Dir3.X_NEG

    def test_solid_absorbs(self):
        machine = build((3, 1, 1), [
            ((0, 0, 0), PlacedBlock(WindSource())),
            ((1, 0, 0), pipe_x()),
            ((2, 0, 0), PlacedBlock(Solid())),
        ])
        exec_ = Exec(machine)
        exec_.spawn_blip(BlipKind.A, (1, 0, 0))
        exec_.update()

        assert exec_.iter_blips() == []

    def test_merge_keeps_first_blip(self):
        machine = build((4, 4, 1), [
            ((0, 2, 0), PlacedBlock(WindSource())),
            ((1, 2, 0), pipe_x()),
            ((2, 2, 0), PlacedBlock(PipeMergeXY())),
            ((2, 1, 0), pipe_y()),
            ((2, 0, 0), PlacedBlock(WindSource())),
        ])
        exec_ = Exec(machine)
        exec_.spawn_blip(BlipKind.A, (1, 2, 0))
        exec_.spawn_blip(BlipKind.B, (2, 1, 0))
        exec_.update()

        blips = exec_.iter_blips()
        assert len(blips) == 1
        assert blips[0][1].kind == BlipKind.A
        assert blips[0][1].position == (2, 2, 0)

    def test_merge_order_follows_spawn_order(self):
        machine = build((4, 4, 1), [
            ((0, 2, 0), PlacedBlock(WindSource())),
            ((1, 2, 0), pipe_x()),
            ((2, 2, 0), PlacedBlock(PipeMergeXY())),
            ((2, 1, 0), pipe_y()),
            ((2, 0, 0), PlacedBlock(WindSource())),
        ])
        exec_ = Exec(machine)
        exec_.spawn_blip(BlipKind.B, (2, 1, 0))
        exec_.spawn_blip(BlipKind.A, (1, 2, 0))
        exec_.update()

        blips = exec_.iter_blips()
        assert len(blips) == 1
        assert blips[0][1].kind == BlipKind.B

    def test_blip_state_matches_blips(self):
        exec_ = Exec(pipe_line(3))
        exec_.spawn_blip(BlipKind.A, (1, 0, 0))
        exec_.update()
        exec_.spawn_blip(BlipKind.B, (1, 0, 0))
        exec_.update()

        for blip_index, blip in exec_.iter_blips():
            index = exec_.machine.get_index_at_pos(blip.position)
            assert exec_.blip_state[index].blip_index == blip_index
        occupied = [state for state in exec_.blip_state if state.blip_index is not None]
        assert len(occupied) == 2


class TestSpawning:
    """Tests for spawning blips."""

    def test_player_spawn_only_into_pipes(self):
        machine = build((3, 1, 1), [
            ((0, 0, 0), PlacedBlock(WindSource())),
            ((1, 0, 0), pipe_x()),
            ((2, 0, 0), PlacedBlock(Solid())),
        ])
        exec_ = Exec(machine)

        assert exec_.spawn_blip(BlipKind.A, (0, 0, 0)) is None
        assert exec_.spawn_blip(BlipKind.A, (2, 0, 0)) is None
        assert exec_.spawn_blip(BlipKind.A, (1, 0, 0)) == 0

    def test_spawn_on_occupied_cell(self):
        exec_ = Exec(pipe_line(2))
        exec_.spawn_blip(BlipKind.A, (1, 0, 0))

        assert exec_.spawn_blip(BlipKind.B, (1, 0, 0)) is None
        assert len(exec_.iter_blips()) == 1

    def test_spawn_on_empty_or_outside(self):
        exec_ = Exec(pipe_line(2))

        assert exec_.spawn_blip(BlipKind.A, (5, 0, 0)) is None
        assert exec_.spawn_blip(BlipKind.A, (0, 1, 0)) is None
        assert exec_.iter_blips() == []

    def test_engine_spawn_rules(self):
        assert Exec.accepts_new_blip(Solid(), False) is False
        assert Exec.accepts_new_blip(Output(), False) is False
        assert Exec.accepts_new_blip(BlipSpawn(), False) is True
        assert Exec.accepts_new_blip(BlipSpawn(), True) is False
        assert Exec.accepts_new_blip(PipeMergeXY(), True) is True

    def test_blip_spawn_stream(self):
        machine = build((4, 1, 1), [
            ((0, 0, 0), PlacedBlock(WindSource())),
            ((1, 0, 0), PlacedBlock(BlipSpawn(BlipKind.C, 2))),
            ((2, 0, 0), pipe_x()),
            ((3, 0, 0), pipe_x()),
        ])
        exec_ = Exec(machine)
        spawn = block_at(exec_, (1, 0, 0))

        exec_.update()
        blip = exec_.blip_at((1, 0, 0))
        assert blip.kind == BlipKind.C
        assert blip.old_position is None
        assert spawn.activated == 0
        assert spawn.num_spawns == 1

        # Waits while its own blip still sits on it
        exec_.update()
        assert spawn.activated is None
        assert exec_.blip_at((2, 0, 0)) is not None

        exec_.update()
        assert spawn.activated == 2
        assert spawn.num_spawns == 0
        assert exec_.blip_at((1, 0, 0)) is not None
        assert exec_.blip_at((3, 0, 0)) is not None

        for _ in range(5):
            exec_.update()
        assert exec_.iter_blips() == []
        assert spawn.activated is None

    def test_exhausted_spawn(self):
        machine = build((2, 1, 1), [
            ((0, 0, 0), PlacedBlock(WindSource())),
            ((1, 0, 0), PlacedBlock(BlipSpawn(BlipKind.A, 0))),
        ])
        exec_ = Exec(machine)
        for _ in range(10):
            exec_.update()

        assert exec_.iter_blips() == []
        assert block_at(exec_, (1, 0, 0)).activated is None

    def test_engine_works_on_a_copy(self):
        machine = build((2, 1, 1), [
            ((0, 0, 0), PlacedBlock(WindSource())),
            ((1, 0, 0), PlacedBlock(BlipSpawn(BlipKind.A, 1))),
        ])
        exec_ = Exec(machine)
        exec_.update()

        assert machine.get_block_at_pos((1, 0, 0))[1].block.num_spawns == 1
        assert block_at(exec_, (1, 0, 0)).num_spawns == 0

    def test_engine_compacts_its_copy(self):
        machine = pipe_line(3)
        machine.remove_at_pos((0, 0, 0))
        exec_ = Exec(machine)

        assert exec_.machine.is_contiguous()
        assert not machine.is_contiguous()
        assert len(exec_.wind_state) == 3


class TestDuplicator:
    """Tests for blip copiers."""

    def make_machine(self, copier):
        return build((3, 3, 1), [
            ((1, 0, 0), PlacedBlock(WindSource())),
            ((1, 1, 0), pipe_y()),
            ((1, 2, 0), PlacedBlock(copier)),
            ((0, 2, 0), pipe_x()),
            ((2, 2, 0), pipe_x()),
        ])

    def test_copies(self):
        exec_ = Exec(self.make_machine(BlipDuplicator()))
        exec_.spawn_blip(BlipKind.B, (1, 1, 0))

        exec_.update()
        assert exec_.iter_blips() == []
        assert block_at(exec_, (1, 2, 0)).activated == BlipKind.B

        exec_.update()
        blips = [blip for _, blip in exec_.iter_blips()]
        assert sorted(blip.position for blip in blips) == [(0, 2, 0), (2, 2, 0)]
        assert all(blip.kind == BlipKind.B for blip in blips)
        assert all(blip.old_position == (1, 2, 0) for blip in blips)
        assert block_at(exec_, (1, 2, 0)).activated is None

    def test_picky_copier_ignores_other_kinds(self):
        exec_ = Exec(self.make_machine(BlipDuplicator(BlipKind.A)))
        exec_.spawn_blip(BlipKind.B, (1, 1, 0))

        exec_.update()
        assert exec_.iter_blips() == []
        assert block_at(exec_, (1, 2, 0)).activated is None

        exec_.update()
        assert exec_.iter_blips() == []

    def test_rotated_copier(self):
        machine = build((3, 3, 1), [
            ((0, 1, 0), PlacedBlock(WindSource())),
            ((1, 1, 0), PlacedBlock(BlipDuplicator(), rotation_xy=1)),
            ((1, 0, 0), pipe_y()),
            ((1, 2, 0), pipe_y()),
            ((2, 1, 0), pipe_x()),
        ])
        exec_ = Exec(machine)
        block_at(exec_, (1, 1, 0)).activated = BlipKind.C
        exec_.update()

        # Local X faces world Y after one quarter turn
        positions = sorted(blip.position for _, blip in exec_.iter_blips())
        assert positions == [(1, 0, 0), (1, 2, 0)]


    def test_copy_into_output_is_consumed(self):
        machine = build((3, 3, 1), [
            ((1, 0, 0), PlacedBlock(WindSource())),
            ((1, 1, 0), pipe_y()),
            ((1, 2, 0), PlacedBlock(BlipDuplicator())),
            ((0, 2, 0), pipe_x()),
            ((2, 2, 0), PlacedBlock(Output(index=0, expected_next_kind=BlipKind.B))),
        ])
        exec_ = Exec(machine)
        exec_.spawn_blip(BlipKind.B, (1, 1, 0))
        exec_.update()
        exec_.update()

        blips = [blip for _, blip in exec_.iter_blips()]
        assert [(blip.kind, blip.position) for blip in blips] == [(BlipKind.B, (0, 2, 0))]
        assert len(exec_.output_observations) == 1
        observation = exec_.output_observations[0]
        assert observation.kind == BlipKind.B
        assert observation.matched
        assert observation.tick == 1

    def test_copy_into_solid_is_absorbed(self):
        machine = build((3, 3, 1), [
            ((1, 0, 0), PlacedBlock(WindSource())),
            ((1, 1, 0), pipe_y()),
            ((1, 2, 0), PlacedBlock(BlipDuplicator())),
            ((0, 2, 0), PlacedBlock(Solid())),
            ((2, 2, 0), pipe_x()),
        ])
        exec_ = Exec(machine)
        exec_.spawn_blip(BlipKind.A, (1, 1, 0))
        exec_.update()
        exec_.update()

        positions = [blip.position for _, blip in exec_.iter_blips()]
        assert positions == [(2, 2, 0)]


class TestBlipWindSource:
    """Tests for blip-triggered wind."""

    def test_pulse(self):
        machine = build((2, 1, 1), [
            ((0, 0, 0), PlacedBlock(BlipWindSource(), rotation_xy=2)),
            ((1, 0, 0), pipe_x()),
        ])
        exec_ = Exec(machine)
        exec_.update()
        assert not wind_at(exec_, (1, 0, 0)).any_in()

        block_at(exec_, (0, 0, 0)).activated = True
        exec_.update()
        assert wind_at(exec_, (1, 0, 0)).wind_in(Dir3.X_NEG)
        assert block_at(exec_, (0, 0, 0)).activated is False

        exec_.update()
        assert not wind_at(exec_, (1, 0, 0)).any_in()

    def test_activated_by_blip(self):
        machine = build((4, 1, 1), [
            ((0, 0, 0), PlacedBlock(WindSource())),
            ((1, 0, 0), pipe_x()),
            ((2, 0, 0), PlacedBlock(BlipWindSource(), rotation_xy=1)),
            ((3, 0, 0), pipe_x()),
        ])
        exec_ = Exec(machine)
        exec_.spawn_blip(BlipKind.A, (1, 0, 0))

        exec_.update()
        assert exec_.iter_blips() == []
        assert block_at(exec_, (2, 0, 0)).activated is True
        assert not wind_at(exec_, (3, 0, 0)).wind_in(Dir3.X_NEG)

        exec_.update()
        assert block_at(exec_, (2, 0, 0)).activated is False
        assert wind_at(exec_, (3, 0, 0)).wind_in(Dir3.X_NEG)

        exec_.update()
        assert not wind_at(exec_, (3, 0, 0)).wind_in(Dir3.X_NEG)


class TestLevelExecution:
    """Tests for inputs and outputs."""

    def make_exec(self, inputs, outputs, debug=False):
        level = Level((3, 3, 1), LevelSpec([inputs], [outputs]))
        machine = Machine.new_from_level(level)
        machine.set_block_at_pos((1, 1, 0), PlacedBlock(PipeMergeXY()))
        machine.set_block_at_pos((1, 0, 0), PlacedBlock(WindSource()))
        return Exec(machine, ExecConfig(debug=debug))

    def test_level_layout(self):
        exec_ = self.make_exec([BlipKind.A], [BlipKind.A])

        assert isinstance(block_at(exec_, (0, 1, 0)), Input)
        assert isinstance(block_at(exec_, (2, 1, 0)), Output)

    def test_input_to_output(self):
        exec_ = self.make_exec([BlipKind.A], [BlipKind.A])
        output = block_at(exec_, (2, 1, 0))
        assert output.expected_next_kind == BlipKind.A

        exec_.update()
        assert exec_.blip_at((0, 1, 0)).kind == BlipKind.A
        assert block_at(exec_, (0, 1, 0)).activated == BlipKind.A

        exec_.update()
        assert exec_.blip_at((1, 1, 0)) is not None

        exec_.update()
        assert exec_.iter_blips() == []
        assert len(exec_.output_observations) == 1
        observation = exec_.output_observations[0]
        assert observation.matched
        assert observation.tick == 2
        assert observation.output_index == 0
        assert output.expected_next_kind is None
        assert exec_.outputs_complete()
        assert not exec_.has_output_mismatch

    def test_input_gaps(self):
        exec_ = self.make_exec([None, BlipKind.B], [BlipKind.B])

        exec_.update()
        assert exec_.iter_blips() == []

        exec_.update()
        assert exec_.blip_at((0, 1, 0)).kind == BlipKind.B

    def test_outputs_not_complete_before_delivery(self):
        exec_ = self.make_exec([BlipKind.A], [BlipKind.A])
        exec_.update()

        assert not exec_.outputs_complete()

    def test_outputs_sharing_an_index_track_separately(self):
        level = Level((3, 3, 1), LevelSpec([[BlipKind.A]], [[BlipKind.A, BlipKind.B]]))
        machine = Machine.new_from_level(level)
        machine.set_block_at_pos((1, 1, 0), pipe_x())
        machine.set_block_at_pos((1, 2, 0), pipe_x())
        machine.set_block_at_pos((2, 2, 0), PlacedBlock(Output(index=0)))
        exec_ = Exec(machine)
        exec_.spawn_blip(BlipKind.A, (1, 1, 0))
        exec_.spawn_blip(BlipKind.A, (1, 2, 0))
        exec_.update()

        assert len(exec_.output_observations) == 2
        assert all(observation.matched for observation in exec_.output_observations)
        assert block_at(exec_, (2, 1, 0)).expected_next_kind == BlipKind.B
        assert block_at(exec_, (2, 2, 0)).expected_next_kind == BlipKind.B

    def test_input_feed_is_reset_from_level(self):
        level = Level((3, 3, 1), LevelSpec([[BlipKind.C]], [[BlipKind.C]]))
        machine = Machine.new_from_level(level)
        exec_ = Exec(machine)

        assert block_at(exec_, (0, 1, 0)).inputs == [BlipKind.C]
        assert machine.get_block_at_pos((0, 1, 0))[1].block.inputs == []

    def test_debug_log(self):
        exec_ = self.make_exec([BlipKind.A], [BlipKind.A], debug=True)
        exec_.update()

        assert exec_.debug_log[0] == "--- Tick 0 ---"
        assert any("Spawned a blip" in line for line in exec_.debug_log)

    def test_no_debug_log_by_default(self):
        exec_ = self.make_exec([BlipKind.A], [BlipKind.A])
        exec_.update()

        assert exec_.debug_log == []


class TestOutputMismatch:
    """Tests for wrong output kinds."""

    def make_machine(self, expected):
        return build((3, 1, 1), [
            ((0, 0, 0), PlacedBlock(WindSource())),
            ((1, 0, 0), pipe_x()),
            ((2, 0, 0), PlacedBlock(Output(index=0, expected_next_kind=expected))),
        ])

    def test_mismatch_is_reported(self, caplog):
        exec_ = Exec(self.make_machine(BlipKind.A))
        exec_.spawn_blip(BlipKind.B, (1, 0, 0))

        with caplog.at_level("WARNING", logger="blipworks.exec.exec"):
            exec_.update()

        assert exec_.iter_blips() == []
        assert len(exec_.output_observations) == 1
        observation = exec_.output_observations[0]
        assert observation.kind == BlipKind.B
        assert observation.expected == BlipKind.A
        assert not observation.matched
        assert exec_.has_output_mismatch
        assert not exec_.outputs_complete()
        assert "expected a" in caplog.text

    def test_mismatch_keeps_expected_kind(self):
        exec_ = Exec(self.make_machine(BlipKind.A))
        exec_.spawn_blip(BlipKind.B, (1, 0, 0))
        exec_.update()

        assert block_at(exec_, (2, 0, 0)).expected_next_kind == BlipKind.A

    def test_sandbox_output_expects_nothing(self):
        exec_ = Exec(self.make_machine(None))
        exec_.spawn_blip(BlipKind.A, (1, 0, 0))
        exec_.update()

        assert exec_.has_output_mismatch
        assert exec_.output_observations[0].expected is None
