#!/usr/bin/env python3
"""
Development server startup script for the fleet backoffice API
"""
import os
import sys
import django
from django.core.management import execute_from_command_line

def main():
    """Start the Django development server"""
    # Set up Django environment
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'fleet_backoffice.settings')

    # Add the project directory to Python path
    project_dir = os.path.dirname(os.path.abspath(__file__))
    sys.path.insert(0, project_dir)

    # Initialize Django
    django.setup()

    # Ensure database schema is up to date before starting.
    execute_from_command_line(['manage.py', 'migrate'])

    if '--seed' in sys.argv:
        execute_from_command_line(['manage.py', 'seed_fleet_demo'])

    print("Starting fleet backoffice development server...")
    print("API will be available at: http://127.0.0.1:8000/api/")
    print("Press Ctrl+C to stop the server")
    print("-" * 50)

    # Run the development server
    execute_from_command_line(['manage.py', 'runserver', '127.0.0.1:8000'])

if __name__ == '__main__':
    main()
