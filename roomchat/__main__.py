from roomchat.main import main

main()
