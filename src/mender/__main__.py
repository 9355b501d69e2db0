from mender.cli import main

main()
