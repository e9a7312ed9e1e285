import pytest

from dzfs.cli import main


@pytest.fixture
def image(tmp_path, capsys):
    path = tmp_path / "disk.img"
    assert main(["init", str(path), "--blocks", "64"]) == 0
    capsys.readouterr()
    return str(path)


def test_init_formats_once(tmp_path, capsys):
    path = str(tmp_path / "fresh.img")
    assert main(["init", path, "--blocks", "64"]) == 0
    first = capsys.readouterr().out
    assert "dzFS initialized" in first
    assert "dzFS ready" in first
    assert main(["init", path]) == 0
    second = capsys.readouterr().out
    assert "dzFS initialized" not in second
    assert "dzFS ready" in second


def test_mkdir_ls_rm(image, capsys):
    assert main(["mkdir", image, "/bin"]) == 0
    assert main(["ls", image]) == 0
    listing = capsys.readouterr().out
    assert "bin" in listing
    assert listing.startswith("d")
    assert main(["rm", image, "/bin"]) == 0
    assert main(["ls", image, "/"]) == 0
    assert "bin" not in capsys.readouterr().out


def test_df_drops_after_install(image, tmp_path, capsys):
    assert main(["df", image]) == 0
    before = int(capsys.readouterr().out)
    source = tmp_path / "data"
    source.write_bytes(b"x" * 10)
    main(["install", image, str(source), "/data"])
    capsys.readouterr()
    assert main(["df", image]) == 0
    after = int(capsys.readouterr().out)
    assert after < before


def test_cat_missing_reports_error(image, capsys):
    assert main(["cat", image, "/nothing"]) == 1
    assert "dzfs:" in capsys.readouterr().err


def test_rm_non_empty_directory_fails(image, tmp_path, capsys):
    main(["mkdir", image, "/d"])
    source = tmp_path / "f"
    source.write_bytes(b"1")
    main(["install", image, str(source), "/d/f"])
    capsys.readouterr()
    assert main(["rm", image, "/d"]) == 1
    assert "not empty" in capsys.readouterr().err


def test_missing_image_fails(tmp_path, capsys):
    assert main(["ls", str(tmp_path / "absent.img")]) == 1
    assert "dzfs:" in capsys.readouterr().err