"""Database schema initialization.

CREATE TABLE / CREATE INDEX statements for companies, users, teams,
the department tree with its closure table, roles, role assignments and
material listings.

Called by database.init_db() inside a transaction.
"""


def create_schema(conn, cursor):
    """Create all tables and indexes.

    Args:
        conn: Database connection (caller commits)
        cursor: Database cursor from get_cursor(conn)
    """
    cursor.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')

    # ============== Companies & Users ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS companies (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name TEXT NOT NULL,
            settings JSONB NOT NULL DEFAULT '{"max_hierarchy_depth": 5, "require_approval_chain": true, "auto_escalate_hours": 48}',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(id),
            email TEXT NOT NULL UNIQUE,
            name TEXT,
            password_hash TEXT,
            status TEXT NOT NULL DEFAULT 'active',
            deleted_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_users_company ON users(company_id)')

    # ============== Teams ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS teams (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(id),
            name TEXT NOT NULL,
            description TEXT,
            location TEXT,
            team_lead_user_id UUID REFERENCES users(id),
            deleted_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('''
        CREATE UNIQUE INDEX IF NOT EXISTS uq_teams_company_name
        ON teams(company_id, name) WHERE deleted_at IS NULL
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS team_members (
            team_id UUID NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (team_id, user_id)
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_team_members_user ON team_members(user_id)')

    # ============== Departments & closure ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS departments (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(id),
            name TEXT NOT NULL,
            description TEXT,
            parent_department_id UUID REFERENCES departments(id),
            level INTEGER NOT NULL DEFAULT 1 CHECK (level >= 1),
            path TEXT NOT NULL,
            manager_user_id UUID REFERENCES users(id),
            deleted_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('''
        CREATE UNIQUE INDEX IF NOT EXISTS uq_departments_company_name
        ON departments(company_id, name) WHERE deleted_at IS NULL
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_departments_parent ON departments(parent_department_id)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS department_hierarchy (
            ancestor_id UUID NOT NULL REFERENCES departments(id),
            descendant_id UUID NOT NULL REFERENCES departments(id),
            depth INTEGER NOT NULL CHECK (depth >= 0),
            PRIMARY KEY (ancestor_id, descendant_id)
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_hierarchy_descendant ON department_hierarchy(descendant_id)')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS department_teams (
            department_id UUID NOT NULL REFERENCES departments(id),
            team_id UUID NOT NULL REFERENCES teams(id),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (department_id, team_id)
        )
    ''')
    # A team belongs to at most one department
    cursor.execute('CREATE UNIQUE INDEX IF NOT EXISTS uq_department_teams_team ON department_teams(team_id)')

    # ============== Roles ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS roles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(id),
            name TEXT NOT NULL,
            description TEXT,
            role_type TEXT NOT NULL CHECK (role_type IN ('admin', 'manager', 'lead', 'member')),
            can_manage_structure BOOLEAN NOT NULL DEFAULT FALSE,
            can_approve_listings BOOLEAN NOT NULL DEFAULT FALSE,
            can_access_settings BOOLEAN NOT NULL DEFAULT FALSE,
            max_approval_amount NUMERIC(15,2) NOT NULL DEFAULT 0 CHECK (max_approval_amount >= 0),
            is_system_role BOOLEAN NOT NULL DEFAULT FALSE,
            deleted_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('''
        CREATE UNIQUE INDEX IF NOT EXISTS uq_roles_company_name
        ON roles(company_id, name) WHERE deleted_at IS NULL
    ''')
    cursor.execute('''
        CREATE UNIQUE INDEX IF NOT EXISTS uq_roles_company_system_type
        ON roles(company_id, role_type) WHERE is_system_role AND deleted_at IS NULL
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS user_roles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id),
            role_id UUID NOT NULL REFERENCES roles(id),
            scope_type TEXT NOT NULL CHECK (scope_type IN ('company', 'department', 'team')),
            scope_id UUID,
            max_approval_amount_override NUMERIC(15,2) CHECK (max_approval_amount_override >= 0),
            granted_by UUID REFERENCES users(id),
            granted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK (scope_id IS NOT NULL OR scope_type IN ('company', 'department'))
        )
    ''')
    # Single active assignment per user
    cursor.execute('CREATE UNIQUE INDEX IF NOT EXISTS uq_user_roles_user ON user_roles(user_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_user_roles_role ON user_roles(role_id)')

    # ============== Listings ==============

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS material_listings (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            company_id UUID NOT NULL REFERENCES companies(id),
            team_id UUID REFERENCES teams(id),
            created_by UUID REFERENCES users(id),
            title TEXT NOT NULL,
            estimated_value NUMERIC(15,2) NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'draft'
                CHECK (status IN ('draft', 'pending_approval', 'approved', 'rejected', 'archived')),
            current_approver_user_id UUID REFERENCES users(id),
            submitted_at TIMESTAMP,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_listings_team ON material_listings(team_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_listings_approver ON material_listings(current_approver_user_id)')
