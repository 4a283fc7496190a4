import argparse
import sys

from dll2lib.verify import check_definition

def main():
    parser = argparse.ArgumentParser(description="Compare a .def file against the exports of a DLL")
    parser.add_argument("dll", help="Path to DLL file")
    parser.add_argument("definition", help="Path to .def file")
    args = parser.parse_args()

    result = check_definition(args.definition, args.dll)

    for name in result.missing:
        print(f"[-] Missing from .def: {name}")
    for name in result.extra:
        print(f"[-] Not exported by DLL: {name}")

    if result.ok:
        print(f"[+] {args.definition} matches the exports of {args.dll}")
        return 0
    return 1

if __name__ == "__main__":
    sys.exit(main())
