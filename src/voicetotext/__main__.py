from voicetotext.app import main

main()
