from dataclasses import dataclass

@dataclass
class Config:
  bin_name = 'larago'

  base_dir = '/var/www/html'
  build_dir = 'build'
  env_file = '.env'
  compose_file = 'docker-compose.yml'

  node_dir = 'NODE.JS'
  node_service = 'node'
  node_suffix = '_node'
  node_app_dir = '/app'

  laravel_service = 'laravel'
  marker_file = 'artisan'

  server_ports = (8000, 8008, 8080)
  mysql_port = 3306

  repo_url = 'git@github.com:{repo}.git'
  git_branches = ('main', 'master')

  defaults = {
    'project_name':    'default',
    'container_name':  'default_app',
    'server_port':     8000,
    'mysql_container': 'mariadb_dev',
    'vite_port':       5173,
    'wait_timeout':    300.0,
    'wait_interval':   1.0,
  }

  env_name = {
    'project_name':    'PROJECT_NAME',
    'container_name':  'CONTAINER_NAME',
    'server_port':     'SERVER_PORT',
    'mysql_container': 'MYSQL_CONTAINER',
    'vite_port':       'VITE_PORT',
    'wait_timeout':    'WAIT_TIMEOUT',
  }

config = Config()
