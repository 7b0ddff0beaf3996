from pathlib import Path

from webui_boot.assembler.ownership import assign_ownership, collapse_nested


def test_root_identity_leaves_ownership_alone(tmp_path, chown_calls):
	(tmp_path / "a").mkdir()
	assert assign_ownership([tmp_path / "a"], 0, 0) == 0
	assert chown_calls == []


def test_nested_paths_collapse_to_their_roots():
	roots = collapse_nested([Path("/app/backend/ssl"), Path("/app"), Path("/root/.cache"), Path("/app/backend/data")])
	assert roots == [Path("/app"), Path("/root/.cache")]


def test_every_path_chowned_exactly_once(tmp_path, chown_calls):
	app = tmp_path / "app"
	(app / "backend" / "ssl").mkdir(parents=True)
	(app / "backend" / "ssl" / "key.pem").write_text("k")
	(app / "backend" / "data").mkdir()

	assign_ownership([app, app / "backend" / "ssl", app / "backend" / "data", tmp_path / "missing"], 1000, 1001)

	paths = [p for p, _, _ in chown_calls]
	assert len(paths) == len(set(paths))
	expected = {str(app), str(app / "backend"), str(app / "backend" / "ssl"), str(app / "backend" / "ssl" / "key.pem"), str(app / "backend" / "data")}
	assert set(paths) == expected
	assert {(u, g) for _, u, g in chown_calls} == {(1000, 1001)}
