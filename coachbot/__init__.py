# Coach Bot - WhatsApp Fitness & Nutrition Assistant
# ===================================================
# A demo WhatsApp bot that answers coaching questions, writes evidence briefs,
# summarizes chats and estimates calories from meal photos via OpenRouter.
#
# ARCHITECTURE LAYERS:
# - Presentation:   main.py entry point (polling loop)
# - Application:    bot/ command routing, prompts/ generation flows
# - Infrastructure: External services (WhatsApp Web, OpenRouter, file storage)
