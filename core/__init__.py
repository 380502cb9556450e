#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
sqlew Core Package
Dialect table, connection adapters, safe-DDL helpers and the migration runner
"""
