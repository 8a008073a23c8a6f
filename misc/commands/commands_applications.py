from __future__ import annotations

import re

import discord
from discord import app_commands
from discord.ext import commands

from config.defaults import APPLICATION_TIERS
from config.defaults import EMBED_COLORS
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.command_errors import render_interaction_error
from misc.commands.command_errors import reply_ephemeral
from staff.errors import InvalidInput
from staff.models import ApplicationForm
from staff.models import ApplicationRecord
from staff.notify import UNDELIVERABLE
from staff.notify import Notice


APPROVE_PREFIX = "approve-application"
DENY_PREFIX = "deny-application"


def build_review_notice(record: ApplicationRecord) -> Notice:
    return (
        Notice(
            title="New Staff Application",
            description=f"Applicant: <@{record.user_id}>",
            color=EMBED_COLORS["info"],
            footer=f"Application #{record.id}",
        )
        .add_field("Name", record.name)
        .add_field("Age", record.age)
        .add_field("Experience", record.experience)
        .add_field("Motivation", record.motivation)
        .add_field("Availability", record.availability)
    )


async def _retire_review_message(interaction: discord.Interaction, outcome: str) -> None:
    message = interaction.message
    if message is None:
        return
    try:
        content = f"{outcome} by {interaction.user.mention}"
        await message.edit(content=content, view=None)
    except discord.HTTPException as e:
        print(f"[Applications] could not update review message={message.id}: {e!r}")


def build_review_items(deps: CommandDeps, gates: CommandGates):
    """Persistent review buttons. custom_id carries the applicant id, so they survive restarts."""

    class ApproveApplicationModal(discord.ui.Modal, title="Approve Application"):
        tier = discord.ui.TextInput(
            label="Role to grant (staff or hr)",
            default="staff",
            max_length=10,
        )

        def __init__(self, applicant_id: int) -> None:
            super().__init__()
            self.applicant_id = applicant_id

        async def on_submit(self, interaction: discord.Interaction):
            await gates.require(interaction, "hr")
            tier = (self.tier.value or "").strip().lower()
            if tier not in APPLICATION_TIERS:
                raise InvalidInput(f"Role must be one of: {', '.join(APPLICATION_TIERS)}.")
            await interaction.response.defer(ephemeral=True, thinking=True)
            await deps.lifecycle.approve_application(
                guild_id=interaction.guild_id,
                user_id=self.applicant_id,
                tier=tier,
                actor_id=interaction.user.id,
            )
            await _retire_review_message(interaction, f"Approved as {tier}")
            await reply_ephemeral(interaction, f"Approved <@{self.applicant_id}> as {tier}.")

        async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
            await render_interaction_error(interaction, error, where="approve-application modal")

    class DenyApplicationModal(discord.ui.Modal, title="Deny Application"):
        reason = discord.ui.TextInput(
            label="Reason for denial",
            style=discord.TextStyle.paragraph,
            max_length=1000,
        )

        def __init__(self, applicant_id: int) -> None:
            super().__init__()
            self.applicant_id = applicant_id

        async def on_submit(self, interaction: discord.Interaction):
            await gates.require(interaction, "hr")
            await interaction.response.defer(ephemeral=True, thinking=True)
            await deps.lifecycle.deny_application(
                guild_id=interaction.guild_id,
                user_id=self.applicant_id,
                reason=self.reason.value,
                actor_id=interaction.user.id,
            )
            await _retire_review_message(interaction, "Denied")
            await reply_ephemeral(interaction, f"Denied the application from <@{self.applicant_id}>.")

        async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
            await render_interaction_error(interaction, error, where="deny-application modal")

    class ApproveApplicationButton(
        discord.ui.DynamicItem[discord.ui.Button],
        template=rf"{APPROVE_PREFIX}:(?P<user_id>\d+)",
    ):
        def __init__(self, user_id: int) -> None:
            super().__init__(
                discord.ui.Button(
                    label="Approve",
                    style=discord.ButtonStyle.success,
                    custom_id=f"{APPROVE_PREFIX}:{int(user_id)}",
                )
            )
            self.user_id = int(user_id)

        @classmethod
        async def from_custom_id(cls, interaction: discord.Interaction, item: discord.ui.Button, match: re.Match[str]):
            return cls(int(match["user_id"]))

        async def callback(self, interaction: discord.Interaction):
            try:
                await gates.require(interaction, "hr")
                await interaction.response.send_modal(ApproveApplicationModal(self.user_id))
            except Exception as e:
                await render_interaction_error(interaction, e, where=APPROVE_PREFIX)

    class DenyApplicationButton(
        discord.ui.DynamicItem[discord.ui.Button],
        template=rf"{DENY_PREFIX}:(?P<user_id>\d+)",
    ):
        def __init__(self, user_id: int) -> None:
            super().__init__(
                discord.ui.Button(
                    label="Deny",
                    style=discord.ButtonStyle.danger,
                    custom_id=f"{DENY_PREFIX}:{int(user_id)}",
                )
            )
            self.user_id = int(user_id)

        @classmethod
        async def from_custom_id(cls, interaction: discord.Interaction, item: discord.ui.Button, match: re.Match[str]):
            return cls(int(match["user_id"]))

        async def callback(self, interaction: discord.Interaction):
            try:
                await gates.require(interaction, "hr")
                await interaction.response.send_modal(DenyApplicationModal(self.user_id))
            except Exception as e:
                await render_interaction_error(interaction, e, where=DENY_PREFIX)

    return ApproveApplicationButton, DenyApplicationButton


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> tuple[type, type]:
    approve_item, deny_item = build_review_items(deps, gates)

    def review_view(user_id: int) -> discord.ui.View:
        view = discord.ui.View(timeout=None)
        view.add_item(approve_item(user_id))
        view.add_item(deny_item(user_id))
        return view

    class StaffApplicationModal(discord.ui.Modal, title="Staff Application"):
        applicant_name = discord.ui.TextInput(label="Full Name", max_length=100)
        applicant_age = discord.ui.TextInput(label="Age", max_length=3)
        applicant_experience = discord.ui.TextInput(
            label="Previous Experience",
            style=discord.TextStyle.paragraph,
            max_length=1000,
        )
        applicant_motivation = discord.ui.TextInput(
            label="Why do you want to join?",
            style=discord.TextStyle.paragraph,
            max_length=1000,
        )
        applicant_availability = discord.ui.TextInput(
            label="Availability (hours per week)",
            max_length=100,
        )

        async def on_submit(self, interaction: discord.Interaction):
            record = await deps.lifecycle.submit_application(
                guild_id=interaction.guild_id,
                user_id=interaction.user.id,
                form=ApplicationForm(
                    name=self.applicant_name.value,
                    age=self.applicant_age.value,
                    experience=self.applicant_experience.value,
                    motivation=self.applicant_motivation.value,
                    availability=self.applicant_availability.value,
                ),
            )
            await interaction.response.defer(ephemeral=True, thinking=True)
            cfg = await deps.config_store.get(interaction.guild_id)
            if cfg.channels.applications is not None:
                outcome = await deps.notifier.channel(
                    cfg.channels.applications,
                    build_review_notice(record),
                    view=review_view(record.user_id),
                )
                if outcome == UNDELIVERABLE:
                    print(f"[Applications] review post failed guild={interaction.guild_id} application={record.id}")
            await reply_ephemeral(
                interaction,
                "Your application has been submitted successfully! You will be notified of the decision.",
            )

        async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
            await render_interaction_error(interaction, error, where="application modal")

    @bot.tree.command(name="apply", description="Apply for a staff position")
    @app_commands.guild_only()
    async def apply_command(interaction: discord.Interaction):
        cfg = await gates.require(interaction, None)
        if not cfg.features.applications_enabled:
            await reply_ephemeral(interaction, "Staff applications are currently closed.")
            return
        await interaction.response.send_modal(StaffApplicationModal())

    application_group = app_commands.Group(
        name="application",
        description="Review staff applications",
        guild_only=True,
    )

    @application_group.command(name="approve", description="Approve a pending staff application")
    @app_commands.describe(user="Applicant", role="Role to grant")
    @app_commands.choices(role=[app_commands.Choice(name="Staff", value="staff"), app_commands.Choice(name="HR", value="hr")])
    async def application_approve(interaction: discord.Interaction, user: discord.User, role: app_commands.Choice[str]):
        await gates.require(interaction, "hr")
        await interaction.response.defer(ephemeral=True, thinking=True)
        await deps.lifecycle.approve_application(
            guild_id=interaction.guild_id,
            user_id=user.id,
            tier=role.value,
            actor_id=interaction.user.id,
        )
        await reply_ephemeral(interaction, f"Approved {user.mention} as {role.value}.")

    @application_group.command(name="deny", description="Deny a pending staff application")
    @app_commands.describe(user="Applicant", reason="Reason for denial")
    async def application_deny(interaction: discord.Interaction, user: discord.User, reason: str):
        await gates.require(interaction, "hr")
        await interaction.response.defer(ephemeral=True, thinking=True)
        await deps.lifecycle.deny_application(
            guild_id=interaction.guild_id,
            user_id=user.id,
            reason=reason,
            actor_id=interaction.user.id,
        )
        await reply_ephemeral(interaction, f"Denied the application from {user.mention}.")

    bot.tree.add_command(application_group)
    return approve_item, deny_item
