import json
import os
import subprocess
import sys
from pathlib import Path

import matplotlib
import numpy as np
import pytest
import yaml

matplotlib.use("Agg")

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import main as main_module
from sample_meshes import cube_scene, sample_scene, write_sample_scene


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _run_main(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess:
    root = _repo_root()
    cmd = [sys.executable, str(root / "main.py"), *args]
    return subprocess.run(
        cmd,
        cwd=root,
        env=env,
        capture_output=True,
        text=True,
        check=False,
    )


def test_main_subprocess_writes_forces(tmp_path):
    scene = write_sample_scene(tmp_path)
    out = tmp_path / "forces.json"
    config_dir = tmp_path / "mplconfig"
    config_dir.mkdir()
    env = dict(os.environ)
    env["MPLCONFIGDIR"] = str(config_dir)
    env.setdefault("MPLBACKEND", "Agg")

    proc = _run_main(
        "-i", scene, "--displace", "8", "0.01", "0", "0", "-o", str(out), env=env
    )

    assert proc.returncode == 0, proc.stderr
    assert "|qfrc_passive| =" in proc.stdout
    saved = json.loads(out.read_text())
    forces = np.array([b["force"] for b in saved["bodies"]])
    assert forces.shape == (8, 3)
    # pulled along +x, body 8 is pushed back
    assert forces[7, 0] < 0.0
    assert np.allclose(forces.sum(axis=0), 0.0, atol=1e-8)


def test_main_at_rest_has_zero_force(tmp_path, capsys):
    scene = write_sample_scene(tmp_path)
    assert main_module.main(["-i", scene]) == 0
    assert "|qfrc_passive| = 0.000000e+00" in capsys.readouterr().out


def test_main_resolves_missing_extension(tmp_path, capsys):
    path = tmp_path / "cube.yaml"
    with open(path, "w") as f:
        yaml.safe_dump(cube_scene(), f)

    assert main_module.main(["-i", str(tmp_path / "cube"), "-q"]) == 0
    assert capsys.readouterr().out == ""


def test_main_missing_input_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["-i", str(tmp_path / "missing")])
    assert excinfo.value.code == 1
    assert "Cannot find scene file" in capsys.readouterr().err


def test_main_properties(tmp_path, capsys):
    scene = write_sample_scene(tmp_path)
    assert main_module.main(["-i", scene, "--properties"]) == 0

    out = capsys.readouterr().out
    assert "Instance 0 (elasticity.solid):" in out
    assert "tetrahedra: 5" in out
    assert "edges:      18" in out
    assert "volume:     1" in out
    assert "free-body" in out
    assert "valence:    1..4 tetrahedra per vertex" in out


def test_main_flex_scene_reports_host_coupled(tmp_path, capsys):
    scene = write_sample_scene(tmp_path, data=cube_scene(flex=True))
    assert main_module.main(["-i", scene, "--properties", "-q"]) == 0
    assert "host-coupled" in capsys.readouterr().out


def test_main_flex_and_free_scenes_agree(tmp_path):
    free = write_sample_scene(tmp_path, "free.json", cube_scene())
    flex = write_sample_scene(tmp_path, "flex.json", cube_scene(flex=True))
    displace = ["--displace", "4", "0.0", "0.02", "-0.01"]

    for path, name in ((free, "free_out.json"), (flex, "flex_out.json")):
        assert main_module.main(["-i", path, "-q", "-o", str(tmp_path / name), *displace]) == 0

    a = json.loads((tmp_path / "free_out.json").read_text())["qfrc_passive"]
    b = json.loads((tmp_path / "flex_out.json").read_text())["qfrc_passive"]
    assert np.allclose(a, b, rtol=1e-8, atol=1e-10)


def test_main_damped_steps(tmp_path):
    scene = sample_scene()
    scene["plugins"][0]["config"]["damping"] = "0.002"
    path = write_sample_scene(tmp_path, data=scene)
    one = tmp_path / "one.json"
    two = tmp_path / "two.json"
    displace = ["--displace", "1", "-0.01", "0", "0"]

    assert main_module.main(["-i", path, "-q", "-o", str(one), *displace]) == 0
    assert main_module.main(["-i", path, "-q", "-o", str(two), "--steps", "2", *displace]) == 0

    first = np.array(json.loads(one.read_text())["qfrc_passive"])
    second = np.array(json.loads(two.read_text())["qfrc_passive"])
    # kD = 0.002 / 0.002 doubles the force while the lengths are changing
    assert np.allclose(first, 2.0 * second)


@pytest.mark.parametrize("steps", ["0", "-2"])
def test_main_rejects_non_positive_steps(tmp_path, capsys, steps):
    scene = write_sample_scene(tmp_path)
    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["-i", scene, "-q", "--steps", steps])
    assert excinfo.value.code == 2
    assert "--steps must be at least 1" in capsys.readouterr().err


def test_main_bad_displacement_body(tmp_path):
    scene = write_sample_scene(tmp_path)
    with pytest.raises(ValueError):
        main_module.main(["-i", scene, "-q", "--displace", "0", "1", "0", "0"])


def test_main_viz_save(tmp_path, monkeypatch):
    scene = write_sample_scene(tmp_path)
    out = tmp_path / "viz.png"
    monkeypatch.setenv("MPLCONFIGDIR", str(tmp_path))

    assert main_module.main(
        ["-i", scene, "-q", "--displace", "3", "0", "0.05", "0", "--viz-save", str(out)]
    ) == 0
    assert out.exists()
    assert out.stat().st_size > 0


def test_main_log_file(tmp_path):
    scene = write_sample_scene(tmp_path)
    log = tmp_path / "run.log"
    assert main_module.main(["-i", scene, "-q", "--log", str(log), "--debug"]) == 0
    text = log.read_text()
    assert "Loaded scene" in text
    assert "Step 0" in text
