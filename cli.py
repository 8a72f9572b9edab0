import pathlib
import sys
sys.path.append(str(pathlib.Path(__file__).parent / "src"))

if __name__ == "__main__":
    from rbstore.boot.boot import init_rbstore
    from rbstore.cli.commands import main

    init_rbstore("cli")

    main()
