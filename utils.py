from datetime import datetime
from io import StringIO
import csv

from errors import InvalidInput

def parse_date(date_str: str) -> datetime:
    """Parse a date string into a naive local datetime."""
    try:
        parsed = datetime.fromisoformat(date_str)
    except ValueError:
        try:
            parsed = datetime.strptime(date_str, "%Y-%m-%d %H:%M")
        except ValueError:
            raise InvalidInput("Invalid date format", field="date")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed

def generate_csv(registrants):
    """Generate a CSV buffer from a list of registered users."""
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["ID", "Name", "Email", "Roll Number"])
    for r in registrants:
        writer.writerow([r["id"], r["name"], r["email"], r["roll_number"]])
    buffer.seek(0)
    return buffer
