from telegenius.worker import main

main()
