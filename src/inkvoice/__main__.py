from inkvoice.cli import main

main()
