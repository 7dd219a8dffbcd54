from webhook_trader.api.runner import main

main()
