import discord
from discord import app_commands
from discord.ext import commands
import logging
import asyncio
from typing import Optional, List
import os
from pathlib import Path

from .audio import AudioManager, AudioEvent
from .config_manager import ConfigManager
from .difficulty import (
    DIFFICULTY_LEVELS, MAX_TABLE, MIN_TABLE, SCORE_CATEGORIES,
    get_difficulty_icon, get_difficulty_name, get_table_color, is_valid_table
)
from .models import Question
from .preferences import JsonFileStore, SettingsStore
from .quiz_controller import QuizController
from .score_client import ScoreAccounts

logger = logging.getLogger(__name__)

STORE_FILENAME = "preferences.json"


def format_duration(total_seconds: int) -> str:
    minutes, seconds = divmod(int(total_seconds), 60)
    return f"{minutes}m {seconds}s" if minutes else f"{seconds}s"


def build_question_embed(question: Question, index: int, total: int, score: int, remaining: int) -> discord.Embed:
    """Render a question with the countdown in the footer."""
    embed = discord.Embed(
        title=f"🎯 Question {index}/{total}",
        description=f"**{question.text}**",
        color=get_table_color(question.multiplier) if remaining > 5 else 0xff6600 if remaining > 2 else 0xff0000
    )
    embed.add_field(name="⭐ Score", value=str(score), inline=True)
    embed.add_field(
        name="📚 Table",
        value=f"{get_difficulty_icon(question.multiplier)} {question.multiplier} ({get_difficulty_name(question.multiplier)})",
        inline=True
    )
    timer_emoji = "⏱️" if remaining > 5 else "⚠️" if remaining > 2 else "🚨"
    embed.set_footer(text=f"{timer_emoji} {remaining} second{'s' if remaining != 1 else ''} remaining")
    return embed


class AnswerView(discord.ui.View):
    """Four option buttons for one question."""

    def __init__(self, quiz_controller: QuizController, channel_id: int, question: Question, timeout: float):
        super().__init__(timeout=timeout)
        self.quiz_controller = quiz_controller
        self.channel_id = channel_id
        self.question = question
        self.selected: Optional[int] = None

        for option in question.options:
            button = discord.ui.Button(label=str(option), style=discord.ButtonStyle.primary)
            button.callback = self._make_callback(option)
            self.add_item(button)

    def _make_callback(self, option: int):
        async def callback(interaction: discord.Interaction):
            self.selected = option
            result = self.quiz_controller.submit_answer(self.channel_id, option)
            if result is None:
                await interaction.response.send_message("⌛ This question is closed.", ephemeral=True)
                return
            await interaction.response.defer()
        return callback

    def reveal(self, selected: Optional[int]) -> None:
        """Disable the buttons and colour them by correctness."""
        for item in self.children:
            if not isinstance(item, discord.ui.Button):
                continue
            item.disabled = True
            value = int(item.label)
            if value == self.question.correct_answer:
                item.style = discord.ButtonStyle.success
            elif value == selected:
                item.style = discord.ButtonStyle.danger
            else:
                item.style = discord.ButtonStyle.secondary
        self.stop()


class RoundPresenter:
    """Keeps one channel's round message in sync with the round controller."""

    def __init__(self, bot: "QuizBot", channel: discord.abc.Messageable, channel_id: int, table: int,
                 player_id: Optional[int] = None):
        self.bot = bot
        self.player_id = player_id
        self.channel = channel
        self.channel_id = channel_id
        self.table = table
        self.message: Optional[discord.Message] = None
        self.view: Optional[AnswerView] = None
        self.question: Optional[Question] = None
        self.index = 0

    def _round(self):
        return self.bot.quiz_controller.get_round(self.channel_id)

    def _total(self) -> int:
        controller = self._round()
        return controller.settings.question_count if controller else 10

    def _score(self) -> int:
        controller = self._round()
        return controller.score if controller else 0

    async def on_question(self, question: Question, index: int, time_limit: int) -> None:
        self.question = question
        self.index = index
        self.view = AnswerView(self.bot.quiz_controller, self.channel_id, question, timeout=time_limit + 30)
        embed = build_question_embed(question, index, self._total(), self._score(), time_limit)
        try:
            self.message = await self.channel.send(embed=embed, view=self.view)
        except discord.HTTPException as e:
            await self.bot.handle_discord_api_error(e, f"present question {index} in channel {self.channel_id}")

    async def on_tick(self, remaining: int) -> None:
        if self.message is None or self.question is None:
            return
        embed = build_question_embed(self.question, self.index, self._total(), self._score(), remaining)
        try:
            await self.message.edit(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Failed to update timer message: {e}")

    async def on_feedback(self, correct: bool, question: Question) -> None:
        if self.message is None or self.view is None:
            return
        self.view.reveal(self.view.selected)
        embed = discord.Embed(
            title=f"{'✅ Correct!' if correct else '❌ Wrong!'} Question {self.index}/{self._total()}",
            description=f"**{question.multiplier} × {question.multiplicand} = {question.correct_answer}**",
            color=0x00ff00 if correct else 0xff0000
        )
        embed.add_field(name="⭐ Score", value=str(self._score()), inline=True)
        try:
            await self.message.edit(embed=embed, view=self.view)
        except discord.HTTPException as e:
            logger.error(f"Failed to show answer feedback: {e}")

    async def on_round_end(self, score: int, total_time: int) -> None:
        if self.view is not None and not self.view.is_finished():
            self.view.reveal(None)
            if self.message is not None:
                try:
                    await self.message.edit(view=self.view)
                except discord.HTTPException as e:
                    logger.error(f"Failed to close question buttons: {e}")

        perfect = score == self._total()
        embed = discord.Embed(
            title="🏆 Perfect Score!" if perfect else "🏁 Round Over",
            description=f"Table **{self.table}** {get_difficulty_icon(self.table)} {get_difficulty_name(self.table)}",
            color=0xffd700 if perfect else get_table_color(self.table)
        )
        embed.add_field(name="⭐ Score", value=f"{score}/{self._total()}", inline=True)
        embed.add_field(name="⏱️ Time", value=format_duration(total_time), inline=True)

        account = self.bot.account_for(self.player_id)
        if account is not None and account.is_signed_in:
            embed.set_footer(text=f"Saving score for {account.get_current_user().username}")
        else:
            embed.set_footer(text="Use /login to save your scores. Use /play to go again.")

        try:
            await self.channel.send(embed=embed)
        except discord.HTTPException as e:
            await self.bot.handle_discord_api_error(e, f"send round summary in channel {self.channel_id}")


class QuizBot(commands.Bot):
    """Discord bot for times table rounds"""

    def __init__(self, config=None):
        # Set up intents - minimal intents for slash commands
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.config_manager: Optional[ConfigManager] = None
        self.audio: Optional[AudioManager] = None
        self.score_accounts: Optional[ScoreAccounts] = None
        self.quiz_controller: Optional[QuizController] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            if self.app_config:
                await self.apply_configuration()

            store = JsonFileStore(Path(self.config_manager.get_data_directory()) / STORE_FILENAME)
            self.audio = AudioManager(SettingsStore(store))

            service = self.config_manager.get_score_service()
            if service is not None:
                self.score_accounts = ScoreAccounts(
                    service['base_url'], service['anon_key'], store=store, timeout=service['timeout']
                )
            else:
                logger.warning("Score service not configured, scores will not be saved")

            self.quiz_controller = QuizController(self.config_manager, self.audio, self.score_accounts)

            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    async def apply_configuration(self):
        """Apply settings from configuration file to managers."""
        rejected = self.config_manager.apply_config(self.app_config)
        for message in rejected:
            logger.warning(f"Ignoring configuration value: {message}")
        logger.info("Configuration applied")

    async def setup_commands(self):
        """Register all slash commands"""
        try:
            @self.tree.command(name="help", description="Display available commands and their descriptions")
            async def help_command(interaction: discord.Interaction):
                await self.handle_help(interaction)

            @self.tree.command(name="tables", description="List the multiplication tables by difficulty")
            async def tables_command(interaction: discord.Interaction):
                await self.handle_tables(interaction)

            @self.tree.command(name="play", description="Start a round of ten questions for a table")
            @app_commands.describe(table="Multiplication table from 2 to 10")
            async def play_command(interaction: discord.Interaction, table: Optional[int] = None):
                await self.handle_play(interaction, table)

            @self.tree.command(name="stop", description="Stop the current round")
            async def stop_command(interaction: discord.Interaction):
                await self.handle_stop(interaction)

            @self.tree.command(name="status", description="Show the current round")
            async def status_command(interaction: discord.Interaction):
                await self.handle_status(interaction)

            @self.tree.command(name="sound", description="Mute or unmute sound effects")
            async def sound_command(interaction: discord.Interaction):
                await self.handle_sound(interaction)

            @self.tree.command(name="music", description="Mute or unmute background music")
            async def music_command(interaction: discord.Interaction):
                await self.handle_music(interaction)

            @self.tree.command(name="volume", description="Set the background music volume")
            @app_commands.describe(percent="Volume from 0 to 100")
            async def volume_command(interaction: discord.Interaction, percent: int):
                await self.handle_volume(interaction, percent)

            @self.tree.command(name="login", description="Sign in to save your scores")
            async def login_command(interaction: discord.Interaction, username: str, password: str):
                await self.handle_login(interaction, username, password)

            @self.tree.command(name="signup", description="Create an account to save your scores")
            async def signup_command(interaction: discord.Interaction, username: str, password: str):
                await self.handle_signup(interaction, username, password)

            @self.tree.command(name="logout", description="Sign out")
            async def logout_command(interaction: discord.Interaction):
                await self.handle_logout(interaction)

            @self.tree.command(name="deleteaccount", description="Delete your account and all your scores")
            @app_commands.describe(confirm="Your username, to confirm")
            async def delete_account_command(interaction: discord.Interaction, confirm: str):
                await self.handle_delete_account(interaction, confirm)

            @self.tree.command(name="profile", description="Show your statistics and best games")
            async def profile_command(interaction: discord.Interaction):
                await self.handle_profile(interaction)

            @self.tree.command(name="scores", description="Show the leaderboard")
            @app_commands.choices(category=[
                app_commands.Choice(name=category.capitalize(), value=category) for category in SCORE_CATEGORIES
            ])
            async def scores_command(interaction: discord.Interaction,
                                     category: Optional[app_commands.Choice[str]] = None):
                await self.handle_scores(interaction, category.value if category else "all")

            logger.info("Slash commands registered")

        except Exception as e:
            logger.error(f"Error setting up commands: {e}")
            raise

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.quiz_controller is not None:
            await self.quiz_controller.shutdown()
        await super().close()

    async def handle_discord_api_error(self, error: Exception, operation: str,
                                       interaction: discord.Interaction = None) -> bool:
        """
        Handle Discord API errors with appropriate retry logic and user feedback.

        Args:
            error: The Discord API error
            operation: Description of the operation that failed
            interaction: Discord interaction object (optional)

        Returns:
            True if the operation may be retried, False otherwise
        """
        if isinstance(error, discord.HTTPException):
            if error.status == 429:
                retry_after = getattr(error, 'retry_after', 5)
                logger.warning(f"Rate limited during {operation}, waiting {retry_after}s")
                await asyncio.sleep(retry_after)
                return True

            elif error.status in [500, 502, 503, 504]:
                logger.warning(f"Discord server error during {operation}: {error.status}")
                await asyncio.sleep(2)
                return True

            elif error.status == 403:
                logger.error(f"Permission denied during {operation}: {error}")
                if interaction:
                    await self.send_error_response(
                        interaction,
                        "Bot doesn't have permission to perform this action. Please check bot permissions.",
                        "❌ Permission Error"
                    )
                return False

            else:
                logger.error(f"Discord API error during {operation}: {error}")
                if interaction:
                    await self.send_error_response(
                        interaction,
                        "Discord API error occurred. Please try again in a moment.",
                        "❌ Discord Error"
                    )
                return False

        elif isinstance(error, asyncio.TimeoutError):
            logger.warning(f"Timeout during {operation}")
            if interaction:
                await self.send_error_response(interaction, "Operation timed out. Please try again.", "❌ Timeout Error")
            return False

        logger.error(f"Unexpected error during {operation}: {error}")
        if interaction:
            await self.send_error_response(
                interaction, "An unexpected error occurred. Please try again.", "❌ Unexpected Error"
            )
        return False

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="🎯 Times Table Quiz Commands",
                description="Ten questions, four choices, and a ticking clock.",
                color=0x00ff00
            )
            help_embed.add_field(
                name="🎮 Playing",
                value=(
                    "`/tables` - List the tables by difficulty\n"
                    "`/play <table>` - Start a round for a table (2-10)\n"
                    "`/stop` - Stop the current round\n"
                    "`/status` - Show the current round"
                ),
                inline=False
            )
            help_embed.add_field(
                name="🔊 Audio",
                value=(
                    "`/sound` - Toggle sound effects\n"
                    "`/music` - Toggle background music\n"
                    "`/volume <0-100>` - Set the music volume"
                ),
                inline=False
            )
            help_embed.add_field(
                name="🏆 Scores",
                value=(
                    "`/signup` `/login` `/logout` - Manage your account\n"
                    "`/deleteaccount <username>` - Delete your account and scores\n"
                    "`/profile` - Your statistics and best games\n"
                    "`/scores [category]` - Leaderboard for all, easy, medium or hard"
                ),
                inline=False
            )
            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )
            help_embed.set_footer(text="Answer before the timer runs out. One timeout ends the round!")
            await interaction.response.send_message(embed=help_embed)

        except Exception as e:
            logger.error(f"Error in help command: {e}")
            await self.send_error_response(interaction, "Failed to display help", "❌ Help Error")

    async def handle_tables(self, interaction: discord.Interaction):
        embed = discord.Embed(title="📚 Multiplication Tables", color=0x6699ff)
        for level in DIFFICULTY_LEVELS.values():
            embed.add_field(
                name=f"{level['icon']} {level['name']}",
                value=", ".join(str(table) for table in level['tables']),
                inline=True
            )
        embed.set_footer(text="Use /play <table> to start a round")
        if self.audio is not None:
            self.audio.play(AudioEvent.CLICK)
        await interaction.response.send_message(embed=embed)

    async def handle_play(self, interaction: discord.Interaction, table: Optional[int] = None):
        """Handle /play command"""
        max_retries = 2
        if table is None:
            table = self.config_manager.get_default_table()

        if not is_valid_table(table):
            await self.send_error_response(
                interaction,
                f"There is no table {table}. Choose a table from {MIN_TABLE} to {MAX_TABLE} with `/tables`.",
                "❌ Unknown Table"
            )
            return

        for attempt in range(max_retries):
            try:
                channel_id = interaction.channel_id
                self.audio.play(AudioEvent.LEVEL_SELECT)

                if self.quiz_controller.has_active_round(channel_id):
                    await self.send_warning_response(
                        interaction,
                        "A round is already running in this channel. Use `/stop` to end it first.",
                        "⚠️ Round In Progress"
                    )
                    return

                embed = discord.Embed(
                    title=f"🎯 Table {table}",
                    description=f"{get_difficulty_icon(table)} {get_difficulty_name(table)} - 10 questions",
                    color=get_table_color(table)
                )
                embed.add_field(
                    name="⏱️ Timer",
                    value="25s for questions 1-3, 20s for 4-6, 18s for 7-8, 15s for 9-10",
                    inline=False
                )
                embed.set_footer(text="A timeout ends the round. Use /stop to quit.")
                await interaction.response.send_message(embed=embed)

                presenter = RoundPresenter(self, interaction.channel, channel_id, table, interaction.user.id)
                result = await self.quiz_controller.start_round(
                    channel_id,
                    table,
                    on_round_end=presenter.on_round_end,
                    on_question=presenter.on_question,
                    on_tick=presenter.on_tick,
                    on_feedback=presenter.on_feedback,
                    player_id=interaction.user.id
                )

                if not result['success']:
                    await self.send_error_response(interaction, result['user_message'], "❌ Round Start Failed")
                return

            except discord.HTTPException as e:
                if await self.handle_discord_api_error(e, "start_round", interaction):
                    if attempt < max_retries - 1:
                        continue
                return

            except Exception as e:
                logger.error(f"Error in play command (attempt {attempt + 1}): {e}")
                if attempt == max_retries - 1:
                    await self.send_error_response(interaction, "Failed to start round", "❌ Round Start Error")
                else:
                    await asyncio.sleep(1)

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        try:
            result = await self.quiz_controller.stop_round(interaction.channel_id)

            if result['success']:
                round_info = result['round_info']
                embed = discord.Embed(
                    title="🛑 Round Stopped",
                    description=f"Table **{round_info['table']}** has been ended",
                    color=0xff6600
                )
                embed.add_field(
                    name="📊 Progress",
                    value=(
                        f"Question: {round_info['question_index']}/{round_info['total_questions']}\n"
                        f"Score: {round_info['score']}\n"
                        f"Time: {format_duration(round_info['elapsed_seconds'])}"
                    ),
                    inline=False
                )
                embed.set_footer(text="Stopped rounds are not saved. Use /play to begin a new round")
                await interaction.response.send_message(embed=embed)
            else:
                await self.send_info_response(interaction, result['user_message'], "ℹ️ No Active Round")

        except Exception as e:
            logger.error(f"Error in stop command: {e}")
            await self.send_error_response(interaction, "Failed to stop round", "❌ Round Control Error")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        try:
            round_info = self.quiz_controller.get_round_status(interaction.channel_id)

            if round_info is None:
                embed = discord.Embed(
                    title="ℹ️ No Active Round",
                    description="There is no round in progress in this channel.",
                    color=0x6699ff
                )
                embed.add_field(name="🎯 Start a Round", value="Use `/play <table>` to begin", inline=False)
                await interaction.response.send_message(embed=embed, ephemeral=True)
                return

            embed = discord.Embed(
                title=f"▶️ Round Status - {round_info['phase'].capitalize()}",
                description=f"Table **{round_info['table']}** ({round_info['difficulty']})",
                color=get_table_color(round_info['table'])
            )
            embed.add_field(
                name="📊 Progress",
                value=(
                    f"Question: {round_info['question_index']}/{round_info['total_questions']}\n"
                    f"Score: {round_info['score']}"
                ),
                inline=True
            )
            embed.add_field(
                name="⏱️ Timing",
                value=(
                    f"Elapsed: {format_duration(round_info['elapsed_seconds'])}\n"
                    f"Remaining: {round_info['remaining_time']}/{round_info['time_limit']}s"
                ),
                inline=True
            )
            embed.set_footer(text="Use /stop to end the round")
            await interaction.response.send_message(embed=embed)

        except Exception as e:
            logger.error(f"Error in status command: {e}")
            await self.send_error_response(interaction, "Failed to get round status", "❌ Status Error")

    async def handle_sound(self, interaction: discord.Interaction):
        muted = self.audio.toggle_sound_mute()
        await self.send_info_response(
            interaction,
            "Sound effects muted." if muted else "Sound effects on.",
            "🔇 Sound Off" if muted else "🔊 Sound On"
        )

    async def handle_music(self, interaction: discord.Interaction):
        muted = self.audio.toggle_music_mute()
        await self.send_info_response(
            interaction,
            "Background music muted." if muted else "Background music on.",
            "🔇 Music Off" if muted else "🎵 Music On"
        )

    async def handle_volume(self, interaction: discord.Interaction, percent: int):
        """Handle /volume command"""
        if not 0 <= percent <= 100:
            await self.send_error_response(interaction, "Volume must be between 0 and 100.", "❌ Invalid Volume")
            return
        volume = self.audio.set_music_volume(percent / 100)
        note = " Music is muted, use `/music` to turn it on." if self.audio.settings.music_muted else ""
        await self.send_info_response(interaction, f"Music volume set to {round(volume * 100)}%.{note}", "🎚️ Volume")

    def account_for(self, user_id: Optional[int]):
        """The score service client for a Discord user, or None without a service."""
        if self.score_accounts is None or user_id is None:
            return None
        return self.score_accounts.for_user(user_id)

    async def _require_score_service(self, interaction: discord.Interaction) -> bool:
        if self.score_accounts is None:
            await self.send_warning_response(
                interaction, "The score service is not configured for this bot.", "⚠️ Scores Unavailable"
            )
            return False
        return True

    async def handle_login(self, interaction: discord.Interaction, username: str, password: str):
        """Handle /login command"""
        if not await self._require_score_service(interaction):
            return
        account = self.account_for(interaction.user.id)
        await interaction.response.defer(ephemeral=True)
        result = await asyncio.to_thread(account.signin, username, password)
        if result['success']:
            await self.send_info_response(interaction, f"Signed in as **{result['user'].username}**.", "✅ Signed In")
        else:
            await self.send_error_response(interaction, result['error'], "❌ Sign In Failed")

    async def handle_signup(self, interaction: discord.Interaction, username: str, password: str):
        """Handle /signup command"""
        if not await self._require_score_service(interaction):
            return
        account = self.account_for(interaction.user.id)
        await interaction.response.defer(ephemeral=True)
        result = await asyncio.to_thread(account.signup, username, password)
        if result['success']:
            await self.send_info_response(
                interaction, f"Account created. Signed in as **{result['user'].username}**.", "✅ Account Created"
            )
        else:
            await self.send_error_response(interaction, result['error'], "❌ Sign Up Failed")

    async def handle_logout(self, interaction: discord.Interaction):
        if not await self._require_score_service(interaction):
            return
        account = self.account_for(interaction.user.id)
        if not account.is_signed_in:
            await self.send_info_response(interaction, "You are not signed in.", "ℹ️ Not Signed In")
            return
        account.signout()
        await self.send_info_response(interaction, "Signed out.", "👋 Signed Out")

    async def handle_delete_account(self, interaction: discord.Interaction, confirm: str):
        """Handle /deleteaccount command"""
        if not await self._require_score_service(interaction):
            return
        account = self.account_for(interaction.user.id)
        if not account.is_signed_in:
            await self.send_info_response(interaction, "Use `/login` first.", "ℹ️ Not Signed In")
            return
        username = account.get_current_user().username
        if confirm != username:
            await self.send_warning_response(
                interaction, f"Type your username `{username}` to confirm. This removes all your scores.",
                "⚠️ Confirm Deletion"
            )
            return

        await interaction.response.defer(ephemeral=True)
        result = await asyncio.to_thread(account.delete_account)
        if result['success']:
            await self.send_info_response(interaction, f"Account **{username}** and its scores were deleted.",
                                          "🗑️ Account Deleted")
        else:
            await self.send_error_response(interaction, result['error'], "❌ Delete Failed")

    async def handle_profile(self, interaction: discord.Interaction):
        """Handle /profile command"""
        if not await self._require_score_service(interaction):
            return
        account = self.account_for(interaction.user.id)
        if not account.is_signed_in:
            await self.send_info_response(interaction, "Use `/login` to see your profile.", "ℹ️ Not Signed In")
            return

        await interaction.response.defer(ephemeral=True)
        profile = await asyncio.to_thread(account.get_profile)
        if profile is None:
            await self.send_error_response(interaction, "Could not load your profile. Please try again.", "❌ Profile Error")
            return

        stats = profile['user']
        embed = discord.Embed(
            title=f"👤 {stats.get('username', account.get_current_user().username)}",
            color=0x6699ff
        )
        embed.add_field(
            name="📊 Statistics",
            value=(
                f"Games: {stats.get('total_games', 0)}\n"
                f"Total score: {stats.get('total_score', 0)}"
            ),
            inline=False
        )
        embed.add_field(name="🏆 Best Games", value=self._format_scores(profile['scores'][:5]), inline=False)
        await interaction.followup.send(embed=embed, ephemeral=True)

    async def handle_scores(self, interaction: discord.Interaction, category: str = "all"):
        """Handle /scores command"""
        if not await self._require_score_service(interaction):
            return
        await interaction.response.defer()
        try:
            scores = await asyncio.to_thread(self.score_accounts.get_scores, category)
        except ValueError as e:
            await self.send_error_response(interaction, str(e), "❌ Unknown Category")
            return

        embed = discord.Embed(
            title=f"🏆 Leaderboard - {category.capitalize()}",
            description=self._format_scores(scores[:10], with_names=True),
            color=DIFFICULTY_LEVELS[category]['color'] if category in DIFFICULTY_LEVELS else 0xffd700
        )
        await interaction.followup.send(embed=embed)

    @staticmethod
    def _format_scores(scores: List, with_names: bool = False) -> str:
        if not scores:
            return "No scores yet."
        lines = []
        for position, entry in enumerate(scores, start=1):
            name = f"**{entry.username}** " if with_names else ""
            lines.append(
                f"{position}. {name}{entry.score}/10 on table {entry.table} in {format_duration(entry.total_time)}"
            )
        return "\n".join(lines)

    async def _send_embed(self, interaction: discord.Interaction, embed: discord.Embed) -> None:
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(title=title, description=message, color=0xff0000)
            embed.set_footer(text="If this error persists, try using /help for available commands")
            await self._send_embed(interaction, embed)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        try:
            await self._send_embed(interaction, discord.Embed(title=title, description=message, color=0x6699ff))
        except discord.HTTPException:
            logger.error("Failed to send info response to user")

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        """Send formatted warning response to user"""
        try:
            await self._send_embed(interaction, discord.Embed(title=title, description=message, color=0xffaa00))
        except discord.HTTPException:
            logger.error("Failed to send warning response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Times Table Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
