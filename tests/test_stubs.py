from pathlib import Path

PACKAGE = Path(__file__).resolve().parents[1] / "pyreducex"


def test_public_modules_ship_type_stubs():
    modules = {path.stem for path in PACKAGE.glob("*.py")}
    stubs = {path.stem for path in PACKAGE.glob("*.pyi")}

    # types.py 本身就是型別宣告
    assert modules - stubs == {"types"}
