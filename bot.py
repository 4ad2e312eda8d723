import os
import logging

from dotenv import load_dotenv
from sqlalchemy import create_engine

import discord
from discord.ext import commands

# Drawing system imports
from drawing_system.announcer import EntriesOpenAnnouncer
from drawing_system.commands import CommandDispatcher, setup as setup_drawing_commands
from drawing_system.config import BOT_EXTERNAL_ID, load_channel_configs
from drawing_system.database import setup_drawing_database
from drawing_system.draw import DrawingRegistry
from drawing_system.identity import IdentityResolver
from drawing_system.store import DrawingStore

# Room access + transports
from room_access import AccessReconciler
from core.discord_chat import DiscordChatTransport
from core.room_bridge import RedisRoomBridge, start_room_bridge
from core.steam_profiles import SteamProfileLookup

from utils.logging_config import setup_logging

# -------------------------
# Load config
# -------------------------
load_dotenv()
setup_logging()

logger = logging.getLogger("bot")

DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")

# Database configuration with cloud PostgreSQL support
DATABASE_URL = os.getenv("DATABASE_URL", "")

if not DATABASE_URL:
    logger.warning("⚠️ DATABASE_URL not set, using local SQLite file drawings.db")
    DATABASE_URL = "sqlite:///drawings.db"

# Convert postgres:// to postgresql:// for SQLAlchemy compatibility (Heroku uses postgres://)
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)
    logger.info("📊 Converted database URL to use postgresql:// scheme")

logger.info(f"📊 Using database: {DATABASE_URL.split('@')[1] if '@' in DATABASE_URL else 'SQLite (local)'}")

engine = create_engine(DATABASE_URL, pool_pre_ping=True)
if not setup_drawing_database(engine):
    raise SystemExit("❌ Could not create the drawing database schema")

# Bad channel configuration is the one thing that stops the bot from booting
CHANNEL_CONFIGS = load_channel_configs()
if not CHANNEL_CONFIGS:
    logger.warning("⚠️ DRAWING_CHANNELS is empty, no channel will run drawings")

# -------------------------
# Discord bot setup
# -------------------------
intents = discord.Intents.default()
intents.message_content = True
intents.members = True

bot = commands.Bot(command_prefix="!", intents=intents)

# -------------------------
# Drawing system wiring
# -------------------------
store = DrawingStore(engine)
chat = DiscordChatTransport(bot)
room_bridge = RedisRoomBridge()
reconciler = AccessReconciler(room_bridge, store, CHANNEL_CONFIGS, bot_identity=BOT_EXTERNAL_ID)
announcer = EntriesOpenAnnouncer(chat.say, wait_until_ready=bot.wait_until_ready)
registry = DrawingRegistry(
    store, CHANNEL_CONFIGS.keys(), announcer=announcer, on_winners_changed=reconciler.winners_changed
)
resolver = IdentityResolver(
    store, registry, SteamProfileLookup(), on_identity_changed=reconciler.identity_changed
)
dispatcher = CommandDispatcher(registry, resolver, chat)


# -------------------------
# Bot events
# -------------------------
@bot.event
async def on_ready():
    logger.info(f"✅ Logged in as {bot.user} (ID: {bot.user.id})")

    # on_ready fires again after every reconnect
    if getattr(bot, 'drawing_ready', False):
        return
    bot.drawing_ready = True

    await registry.load()

    await reconciler.load()
    bot.room_listener = await start_room_bridge(room_bridge, reconciler)

    await setup_drawing_commands(bot, dispatcher)
    logger.info(f"🎟️ Drawings active in {len(registry.channels)} channel(s)")


@bot.event
async def on_command_error(ctx, error):
    if isinstance(error, commands.CommandNotFound):
        return
    if isinstance(error, (commands.BadArgument, commands.MissingRequiredArgument)):
        await ctx.send(f"❌ {error}")
        return
    logger.error(f"Command {ctx.command} failed: {error}", exc_info=error)


# -------------------------
# Run bot
# -------------------------
if __name__ == "__main__":
    if not DISCORD_TOKEN:
        raise SystemExit("❌ DISCORD_TOKEN environment variable is required")

    logger.info("✅ Drawing bot starting")
    bot.run(DISCORD_TOKEN, log_handler=None)
