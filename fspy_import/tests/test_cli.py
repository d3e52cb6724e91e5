"""
Tests for the fspy-import command line.
"""

import json

import pytest

from fspy_import.cli import main
from fspy_import.store import ProjectStore

from conftest import PNG_BYTES, make_fspy_bytes, make_state


class TestCLI:
    """Tests for main()."""

    def test_summary(self, fspy_file, capsys):
        assert main([str(fspy_file)]) == 0

        out = capsys.readouterr().out
        assert "FSPY PROJECT" in out
        assert "room.fspy" in out
        assert "27.000" in out
        assert "1280 x 960" in out

    def test_json_output(self, fspy_file, capsys):
        assert main([str(fspy_file), '--json', '--sensor-width', '24', '--sensor-height', '36']) == 0

        data = json.loads(capsys.readouterr().out)
        assert data['fileName'] == 'room.fspy'
        assert data['absoluteFocalLength'] == pytest.approx(27.0)
        assert data['pose']['forward'] == [pytest.approx(0.0), pytest.approx(0.0), -1.0]
        assert data['imageBytes'] == len(PNG_BYTES)

    def test_save_image_default_name(self, fspy_file):
        assert main([str(fspy_file), '--save-image']) == 0

        assert (fspy_file.parent / 'room.png').read_bytes() == PNG_BYTES

    def test_save_image_explicit_path(self, fspy_file, tmp_path):
        target = tmp_path / 'out' / 'wallpaper.png'
        assert main([str(fspy_file), '--save-image', str(target)]) == 0

        assert target.read_bytes() == PNG_BYTES

    def test_config_and_store(self, fspy_file, tmp_path):
        config_path = tmp_path / 'config.yaml'
        config_path.write_text(
            "sensor:\n  width: 24\n  height: 36\n"
            "output:\n  image_dir: images\n  store: store.json\n  store_key: views\n"
        )

        assert main([str(fspy_file), '-c', str(config_path), '--save-image']) == 0

        assert (tmp_path / 'images' / 'room.png').exists()
        projects = ProjectStore(tmp_path / 'store.json').get_list('views')
        assert [p.file_name for p in projects] == ['room.fspy']

    def test_missing_file(self, tmp_path):
        assert main([str(tmp_path / 'missing.fspy')]) == 1

    def test_bad_project(self, tmp_path):
        path = tmp_path / 'bad.fspy'
        path.write_bytes(make_fspy_bytes(version=9))

        assert main([str(path)]) == 1

    def test_singular_transform(self, tmp_path):
        rows = [[0, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]]
        path = tmp_path / 'flat.fspy'
        path.write_bytes(make_fspy_bytes(state=make_state(cameraTransform={'rows': rows})))

        assert main([str(path)]) == 1

    def test_bad_sensor(self, fspy_file):
        assert main([str(fspy_file), '--sensor-width', '0']) == 1

    def test_unexpected_error(self, fspy_file, monkeypatch):
        def fail(path):
            raise RuntimeError("boom")

        monkeypatch.setattr('fspy_import.cli.read_project', fail)

        assert main([str(fspy_file)]) == 1
