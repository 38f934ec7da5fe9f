from lingoloop.cli import main

main()
