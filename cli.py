"""Admin CLI for the petwatch service."""

from __future__ import annotations

import asyncio

import click

from shared.models.place import PLACE_TYPES


def run_async(coro):
    """Run an async function in a new event loop."""
    return asyncio.run(coro)


@click.group()
def cli():
    """Petwatch administration CLI."""
    pass


# --- Setup ---


@cli.command("init-db")
def init_db():
    """Create any missing database tables."""
    click.echo("Creating database tables...")
    run_async(_init_db())
    click.echo("Done.")


async def _init_db():
    from shared.database import dispose_engine, get_engine, init_models

    await init_models(get_engine())
    await dispose_engine()


# --- User Management ---


@cli.group()
def user():
    """Resident account commands."""
    pass


@user.command("create")
@click.argument("email")
@click.option("--name", default=None, help="Display name")
@click.password_option(help="Login password")
@click.option("--admin", is_flag=True, help="Grant admin rights")
def create_user(email, name, password, admin):
    """Create a resident account."""
    run_async(_create_user(email, name, password, "admin" if admin else "user"))


async def _create_user(email, name, password, role):
    from sqlalchemy import func, select

    from portal.auth import hash_password
    from shared.database import dispose_engine, get_session_factory
    from shared.models.user import User

    session_factory = get_session_factory()
    async with session_factory() as session:
        result = await session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        if result.scalar_one_or_none() is not None:
            click.echo(f"Error: a user with email {email} already exists.")
            await dispose_engine()
            return

        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            role=role,
        )
        session.add(user)
        await session.commit()
        click.echo(f"Created {role}: {user.id} ({email})")

    await dispose_engine()


@user.command("promote")
@click.argument("email")
@click.option("--role", required=True, type=click.Choice(["admin", "user"]))
def promote(email, role):
    """Change a resident's role."""
    run_async(_promote(email, role))


async def _promote(email, role):
    from sqlalchemy import func, select

    from shared.database import dispose_engine, get_session_factory
    from shared.models.user import User

    session_factory = get_session_factory()
    async with session_factory() as session:
        result = await session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        user = result.scalar_one_or_none()
        if user is None:
            click.echo(f"Error: no user with email {email}.")
        else:
            user.role = role
            await session.commit()
            click.echo(f"{email} is now {role}.")

    await dispose_engine()


# --- Places ---


@cli.group()
def place():
    """Place and sub-place commands."""
    pass


@place.command("add")
@click.argument("name")
@click.option(
    "--type",
    "place_type",
    default="building_common",
    type=click.Choice(PLACE_TYPES),
)
@click.option("--external-id", default=None, help="Stable key, e.g. building-10")
@click.option("--order", default=0, type=int, help="Display order")
def add_place(name, place_type, external_id, order):
    """Add a place."""
    run_async(_add_place(name, place_type, external_id, order))


async def _add_place(name, place_type, external_id, order):
    from shared.database import dispose_engine, get_session_factory
    from shared.models.place import Place

    session_factory = get_session_factory()
    async with session_factory() as session:
        new_place = Place(
            name=name,
            place_type=place_type,
            external_id=external_id,
            display_order=order,
        )
        session.add(new_place)
        await session.commit()
        click.echo(f"Created place: {new_place.id} ({name})")

    await dispose_engine()


@place.command("add-sub-place")
@click.argument("external_id")
@click.argument("name")
@click.option("--owner-email", default=None, help="Resident who owns this unit")
def add_sub_place(external_id, name, owner_email):
    """Add a sub-place to the place with EXTERNAL_ID."""
    run_async(_add_sub_place(external_id, name, owner_email))


async def _add_sub_place(external_id, name, owner_email):
    from sqlalchemy import func, select

    from shared.database import dispose_engine, get_session_factory
    from shared.models.place import Place, SubPlace
    from shared.models.user import User

    session_factory = get_session_factory()
    async with session_factory() as session:
        result = await session.execute(select(Place).where(Place.external_id == external_id))
        parent = result.scalar_one_or_none()
        if parent is None:
            click.echo(f"Error: no place with external id {external_id}.")
            await dispose_engine()
            return

        owner_id = None
        if owner_email:
            result = await session.execute(
                select(User.id).where(func.lower(User.email) == owner_email.lower())
            )
            owner_id = result.scalar_one_or_none()
            if owner_id is None:
                click.echo(f"Error: no user with email {owner_email}.")
                await dispose_engine()
                return

        sub_place = SubPlace(place_id=parent.id, name=name, owner_id=owner_id)
        session.add(sub_place)
        await session.commit()
        click.echo(f"Created sub-place: {sub_place.id} ({parent.name} - {name})")

    await dispose_engine()


# --- Subjects ---


@cli.group()
def subject():
    """Tracked subject commands."""
    pass


@subject.command("add")
@click.argument("subject_id")
@click.option("--name", required=True, help="Display name, e.g. Rocky")
def add_subject(subject_id, name):
    """Register a subject so its hunger meter can be read and reset."""
    run_async(_add_subject(subject_id, name))


async def _add_subject(subject_id, name):
    from shared.database import dispose_engine, get_session_factory
    from shared.models.subject import TrackedSubject

    session_factory = get_session_factory()
    async with session_factory() as session:
        if await session.get(TrackedSubject, subject_id) is not None:
            click.echo(f"Error: subject {subject_id} already exists.")
        else:
            session.add(TrackedSubject(id=subject_id, name=name))
            await session.commit()
            click.echo(f"Created subject: {subject_id} ({name})")

    await dispose_engine()


# --- Server ---


@cli.command()
@click.option("--host", default="0.0.0.0")
@click.option("--port", default=8000, type=int)
def serve(host, port):
    """Run the web app with uvicorn."""
    import uvicorn

    uvicorn.run("portal.main:app", host=host, port=port)


if __name__ == "__main__":
    cli()
