"""
============================================================================
Kipi Organizer CLI
============================================================================
Command-line interface for subjects, Cornell notes and the offline cache.

Usage:
    organizer subjects list
    organizer subjects add --name "Algebra" --color "#3b82f6" --slot 1,08:00,10:00
    organizer subjects delete <subject-id>
    organizer notes list --subject-id <subject-id>
    organizer notes add --subject-id <subject-id> --title "Matrices" --date 2025-03-10
    organizer notes delete <note-id>
    organizer week
    organizer cache install | status | clear
============================================================================
"""

import asyncio
import json
import sys
from typing import Awaitable, Callable

import click

from organizer_client.config import Settings
from organizer_client.main import Organizer, configure_logging
from organizer_client.models import DAY_NAMES, Identity, NoteCreate, Schedule, SubjectCreate


class CLIContext:
    def __init__(self, user_id: str | None):
        self.settings = Settings()
        # stdout carries command output (--json-output)
        configure_logging(self.settings.app, stream=sys.stderr)
        self.user_id = user_id or self.settings.session.user_id

    def identity(self) -> Identity | None:
        if not self.user_id:
            return None
        return Identity(
            user_id=self.user_id,
            email=self.settings.session.email,
            access_token=self.settings.session.access_token,
        )

    def run(self, action: Callable[[Organizer], Awaitable[None]], sign_in: bool = True) -> None:
        """Run ``action`` against a started organizer, signed in when required."""

        async def runner() -> None:
            organizer = Organizer(self.settings)
            try:
                await organizer.startup(install_cache=False)
                if sign_in:
                    identity = self.identity()
                    if identity is None:
                        raise click.UsageError("Provide --user-id or set SESSION_USER_ID")
                    await organizer.sign_in(identity)
                await action(organizer)
            finally:
                await organizer.shutdown()

        try:
            asyncio.run(runner())
        except click.UsageError:
            raise
        except Exception as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)


def parse_slot(value: str) -> Schedule:
    """Parse ``DAY,HH:MM,HH:MM`` (day 0 = Sunday)."""
    try:
        day, start, end = (part.strip() for part in value.split(","))
        return Schedule(day=int(day), start_time=start, end_time=end)
    except ValueError as e:
        raise click.BadParameter(f"Expected DAY,HH:MM,HH:MM, got {value!r}") from e


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2, default=str, ensure_ascii=False))


@click.group()
@click.option('--user-id', help='Owner id (defaults to SESSION_USER_ID)')
@click.pass_context
def cli(ctx, user_id):
    """Kipi Organizer CLI - Manage subjects, Cornell notes and the offline cache."""
    ctx.obj = CLIContext(user_id)


# ----------------------------------------------------------------------------
# Subjects
# ----------------------------------------------------------------------------


@cli.group()
def subjects():
    """Manage subjects and their weekly schedule."""


@subjects.command('list')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_obj
def list_subjects(obj, json_output):
    """List subjects in load order."""

    async def action(organizer: Organizer) -> None:
        items = organizer.subjects.snapshot
        if json_output:
            _echo_json([s.model_dump(by_alias=True) for s in items])
            return
        if not items:
            click.echo("No subjects found")
            return
        for subject in items:
            click.echo(f"\n{subject.name}  [{subject.id}]")
            if subject.teacher:
                click.echo(f"  Teacher: {subject.teacher}")
            if subject.classroom:
                click.echo(f"  Classroom: {subject.classroom}")
            for slot in subject.schedule:
                click.echo(f"  {slot.day_name}: {slot.start_time} - {slot.end_time}")

    obj.run(action)


@subjects.command('add')
@click.option('--name', required=True, help='Subject name')
@click.option('--color', required=True, help='Display color, e.g. #3b82f6')
@click.option('--slot', 'slots', multiple=True, help='Weekly slot DAY,HH:MM,HH:MM (repeatable)')
@click.option('--classroom', help='Classroom')
@click.option('--teacher', help='Teacher')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_obj
def add_subject(obj, name, color, slots, classroom, teacher, json_output):
    """Create a subject."""
    data = SubjectCreate(
        name=name,
        color=color,
        schedule=[parse_slot(s) for s in slots],
        classroom=classroom,
        teacher=teacher,
    )

    async def action(organizer: Organizer) -> None:
        subject = await organizer.subjects.add(data)
        if json_output:
            _echo_json(subject.model_dump(by_alias=True))
        else:
            click.echo(f"✓ Created subject {subject.name} [{subject.id}]")

    obj.run(action)


@subjects.command('delete')
@click.argument('subject_id')
@click.pass_obj
def delete_subject(obj, subject_id):
    """Delete a subject (its notes are removed by the backend)."""

    async def action(organizer: Organizer) -> None:
        await organizer.subjects.delete(subject_id)
        click.echo(f"✓ Deleted subject {subject_id}")

    obj.run(action)


# ----------------------------------------------------------------------------
# Notes
# ----------------------------------------------------------------------------


@cli.group()
def notes():
    """Manage Cornell notes."""


@notes.command('list')
@click.option('--subject-id', help='Only notes of this subject, newest first')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_obj
def list_notes(obj, subject_id, json_output):
    """List notes."""

    async def action(organizer: Organizer) -> None:
        store = organizer.notes
        items = store.notes_for_subject_by_date(subject_id) if subject_id else list(store.snapshot)
        if json_output:
            _echo_json([n.model_dump(by_alias=True) for n in items])
            return
        if not items:
            click.echo("No notes found")
            return
        if subject_id:
            attended = store.attendance_count(subject_id)
            click.echo(f"Attendance: {attended}/{len(items)}")
        for note in items:
            mark = "✓" if note.attendance else "✗"
            click.echo(f"\n{mark} {note.date}  {note.title}  [{note.id}]")
            if note.summary:
                click.echo(f"  Summary: {note.summary[:100]}")

    obj.run(action)


@notes.command('add')
@click.option('--subject-id', required=True, help='Subject the note belongs to')
@click.option('--title', required=True, help='Note title')
@click.option('--date', 'date_', required=True, help='Session date (YYYY-MM-DD)')
@click.option('--cues', default='', help='Cue column')
@click.option('--notes', 'body', default='', help='Note body (use @file.txt to read from file)')
@click.option('--summary', default='', help='Summary')
@click.option('--attended/--absent', default=True, help='Attendance')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_obj
def add_note(obj, subject_id, title, date_, cues, body, summary, attended, json_output):
    """Create a note."""
    if body.startswith('@'):
        with open(body[1:], 'r') as f:
            body = f.read()

    data = NoteCreate(
        subject_id=subject_id,
        title=title,
        date=date_,
        cues=cues,
        notes=body,
        summary=summary,
        attendance=attended,
    )

    async def action(organizer: Organizer) -> None:
        note = await organizer.notes.add(data)
        if json_output:
            _echo_json(note.model_dump(by_alias=True))
        else:
            click.echo(f"✓ Created note {note.title} [{note.id}]")

    obj.run(action)


@notes.command('delete')
@click.argument('note_id')
@click.pass_obj
def delete_note(obj, note_id):
    """Delete a note."""

    async def action(organizer: Organizer) -> None:
        await organizer.notes.delete(note_id)
        click.echo(f"✓ Deleted note {note_id}")

    obj.run(action)


# ----------------------------------------------------------------------------
# Week
# ----------------------------------------------------------------------------


@cli.command()
@click.pass_obj
def week(obj):
    """Print the weekly schedule, Monday first."""

    async def action(organizer: Organizer) -> None:
        slots = organizer.subjects.weekly_slots()
        for day in (1, 2, 3, 4, 5, 6, 0):
            if not slots[day]:
                continue
            click.echo(f"\n{DAY_NAMES[day]}")
            for entry in slots[day]:
                room = f"  ({entry.subject.classroom})" if entry.subject.classroom else ""
                click.echo(
                    f"  {entry.slot.start_time}-{entry.slot.end_time}  {entry.subject.name}{room}"
                )

    obj.run(action)


# ----------------------------------------------------------------------------
# Offline cache
# ----------------------------------------------------------------------------


@cli.group()
def cache():
    """Manage the offline cache."""


@cache.command('install')
@click.pass_obj
def install_cache(obj):
    """Fetch the app shell into the current cache version."""

    async def action(organizer: Organizer) -> None:
        controller = organizer.cache_controller
        await controller.start()
        click.echo(f"✓ Installed {len(controller.manifest)} assets into {controller.cache_name}")

    obj.run(action, sign_in=False)


@cache.command('status')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_obj
def cache_status(obj, json_output):
    """Show caches and the number of stored entries."""

    async def action(organizer: Organizer) -> None:
        storage = organizer.cache_storage
        current = organizer.cache_controller.cache_name
        status = {
            "current": current,
            "state": organizer.cache_controller.state.value,
            "caches": {name: len(storage.open(name).keys()) for name in storage.keys()},
        }
        if json_output:
            _echo_json(status)
            return
        click.echo(f"Current cache: {current} ({status['state']})")
        for name, count in status["caches"].items():
            marker = "*" if name == current else " "
            click.echo(f" {marker} {name}: {count} entries")

    obj.run(action, sign_in=False)


@cache.command('clear')
@click.pass_obj
def clear_cache(obj):
    """Delete every cache, current version included."""

    async def action(organizer: Organizer) -> None:
        storage = organizer.cache_storage
        names = storage.keys()
        for name in names:
            storage.delete(name)
        click.echo(f"✓ Deleted {len(names)} caches")

    obj.run(action, sign_in=False)


if __name__ == '__main__':
    cli()
