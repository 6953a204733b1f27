import click
from flask.cli import with_appcontext


@click.command('expire-booking-requests')
@with_appcontext
def expire_booking_requests_command():
    """
    Mark pending booking requests whose payment window elapsed as expired.
    Safe to run from several schedulers at once.

    Usage: flask expire-booking-requests
    """
    from roomdesk.services.booking_request_service import expire_pending_requests

    count = expire_pending_requests()
    if count > 0:
        click.echo(f"Expired {count} booking request(s)")
    else:
        click.echo("No booking requests to expire")


@click.command('cleanup-booking-requests')
@with_appcontext
def cleanup_booking_requests_command():
    """
    Delete abandoned requests (no payment proof, never converted).

    Usage: flask cleanup-booking-requests
    """
    from roomdesk.services.booking_request_service import cleanup_abandoned_requests

    count = cleanup_abandoned_requests()
    click.echo(f"Deleted {count} abandoned booking request(s)")


@click.command('list-booking-requests')
@click.option('--store-id', type=int, help='Filter by store ID')
@click.option('--status', default=None, help='pending, confirmed, cancelled, expired, check-in, completed')
@with_appcontext
def list_booking_requests_command(store_id, status):
    """
    Usage:
        flask list-booking-requests
        flask list-booking-requests --store-id=1 --status=pending
    """
    from roomdesk.models.bookingRequest import BookingRequest
    from roomdesk.models.statuses import RequestStatus

    query = BookingRequest.query
    if store_id:
        query = query.filter_by(store_id=store_id)
    if status:
        query = query.filter(BookingRequest.status == RequestStatus.parse(status))
    reqs = query.order_by(BookingRequest.created_at.desc()).all()

    if not reqs:
        click.echo("No booking requests found.")
        return

    click.echo(f"{'BID':<24} {'Store':<6} {'Date':<11} {'Time':<12} {'Status':<10} {'Expires'}")
    click.echo("-" * 85)
    for r in reqs:
        expires = r.expired_at.strftime('%Y-%m-%d %H:%M') if r.expired_at else '-'
        click.echo(f"{r.bid:<24} {r.store_id:<6} {r.booking_date.isoformat():<11} "
                   f"{r.start_time:%H:%M}-{r.end_time:%H:%M}  {r.status.value:<10} {expires}")


def register_commands(app):
    app.cli.add_command(expire_booking_requests_command)
    app.cli.add_command(cleanup_booking_requests_command)
    app.cli.add_command(list_booking_requests_command)
