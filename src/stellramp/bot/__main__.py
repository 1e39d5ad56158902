"""Bot-only mode: python -m stellramp.bot"""

# .env must be loaded before settings are first read
from dotenv import load_dotenv
load_dotenv()

from stellramp.bot.bot import main

main()
