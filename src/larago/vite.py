import re
from string import Template

HMR_RE = re.compile(r"hmr.*host.*localhost")

VITE_CONFIG = Template("""\
import { defineConfig } from 'vite';
import laravel from 'laravel-vite-plugin';
import tailwindcss from '@tailwindcss/vite';

export default defineConfig({
    plugins: [
        laravel({
            input: ['resources/css/app.css', 'resources/js/app.js'],
            refresh: true,
        }),
        tailwindcss(),
    ],
    server: {
        host: '0.0.0.0',
        port: $port,
        strictPort: true,
        hmr: { host: 'localhost' },
        watch: { usePolling: false },
    },
});
""")


def render_vite_config(port: int = 5173) -> str:
  return VITE_CONFIG.substitute(port=port)


def needs_patch(source: str) -> bool:
  """True unless some line already points HMR at localhost"""
  return not any(HMR_RE.search(line) for line in source.splitlines())
