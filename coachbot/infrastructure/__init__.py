# Infrastructure Layer
# ====================
# Contains all external service integrations:
# - whatsapp/: Selenium-based WhatsApp Web automation
# - llm/: OpenRouter text generation and image captions
# - storage/: attachment files on disk
# - config/: Environment and settings management
