#!/usr/bin/env python3
"""Backup runner"""
import sys
from mongo_s3_backup.cli import main

if __name__ == '__main__':
    sys.exit(main())
