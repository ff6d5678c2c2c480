import argparse

from scripts.stress_replay import run_stress_replay


def test_stress_replay_fast_smoke(tmp_path) -> None:
    args = argparse.Namespace(
        hours=6.0,
        seed=7,
        workdir=str(tmp_path / ".stress_replay"),
        clean=True,
        preset="25_5",
        step_seconds=10,
        sleep_per_step=0.0,
        start_rate=0.2,
        pause_rate=0.01,
        resume_rate=0.3,
        restart_rate=0.01,
        time_jump_rate=0.01,
        time_jump_seconds=3600,
        catch_up_limit=1000,
    )
    rc = run_stress_replay(args)
    assert rc == 0
