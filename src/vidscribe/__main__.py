from vidscribe.cli.main import main

main()
