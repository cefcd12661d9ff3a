import re

from larago.errors import RouteMergeError

CUSTOM_MARKER = "// ****** YOUR CUSTOM ROUTES ****** //"
BREEZE_MARKER = "// ****** ROUTES ADDED BY BREEZE ****** //"

BREEZE_ANCHOR = "use App\\Http\\Controllers\\ProfileController;"
ROUTE_FACADE = "use Illuminate\\Support\\Facades\\Route;"
WELCOME_RE = re.compile(r"Route::get.*welcome")


def strip_php_open_tag(source: str) -> str:
  """Drop the first line when it is the `<?php` opening tag"""
  lines = source.splitlines()
  if lines and lines[0].startswith("<?php"):
    lines = lines[1:]
  return "\n".join(lines)


def breeze_section(generated: str) -> str:
  """Lines from the ProfileController import to the end, without the Route
  facade import and the welcome route, both of which the custom file keeps"""
  lines = generated.splitlines()
  for index, line in enumerate(lines):
    if BREEZE_ANCHOR in line:
      break
  else:
    raise RouteMergeError(
      "Generated routes/web.php has no ProfileController import",
      ["Breeze may have failed to install; check `composer require laravel/breeze` output"],
    )
  kept = [
    line for line in lines[index:]
    if ROUTE_FACADE not in line and not WELCOME_RE.search(line)
  ]
  return "\n".join(kept)


def merge_routes(custom: str, generated: str) -> str:
  """Build routes/web.php from the project's routes plus Breeze's.

  Layout: `<?php`, the custom marker, the custom routes, the Breeze
  marker, then the Breeze section. A file that already carries the Breeze
  marker is returned unchanged.
  """
  if BREEZE_MARKER in custom:
    return custom

  parts = [
    "<?php",
    "",
    CUSTOM_MARKER,
    strip_php_open_tag(custom),
    "",
    BREEZE_MARKER,
    "",
    breeze_section(generated),
  ]
  return "\n".join(parts) + "\n"
