SCHEMA_SQL = r"""
-- Quotations (cotizaciones)
CREATE TABLE IF NOT EXISTS quotations (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  client_name TEXT,
  number_of_guests INTEGER NOT NULL DEFAULT 1,
  event_date TEXT,                       -- ISO date
  status TEXT NOT NULL DEFAULT 'PENDING',
  created_at TEXT NOT NULL
);

-- Events
CREATE TABLE IF NOT EXISTS events (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL,
  location TEXT NOT NULL DEFAULT '',
  event_date TEXT NOT NULL,              -- ISO date
  description TEXT,
  quotation_id INTEGER,
  required_staff INTEGER NOT NULL DEFAULT 0,
  settlement_status TEXT NOT NULL DEFAULT 'PENDING',   -- PENDING / SETTLED
  created_at TEXT NOT NULL,
  FOREIGN KEY (quotation_id) REFERENCES quotations(id) ON DELETE SET NULL
);

-- Ingredients (stock lives here, mutated only by confirmed movements)
CREATE TABLE IF NOT EXISTS ingredients (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  base_unit TEXT NOT NULL,               -- gr / ml / und
  cost_per_unit REAL NOT NULL DEFAULT 0,
  current_stock REAL NOT NULL DEFAULT 0 CHECK (current_stock >= 0)
);

CREATE TABLE IF NOT EXISTS ingredient_suppliers (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ingredient_id INTEGER NOT NULL,
  supplier TEXT NOT NULL,
  package_quantity REAL NOT NULL,
  package_unit TEXT NOT NULL,
  package_price REAL NOT NULL,
  cost_per_base_unit REAL NOT NULL,
  is_primary INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  FOREIGN KEY (ingredient_id) REFERENCES ingredients(id) ON DELETE CASCADE
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_ingredient_suppliers_primary
  ON ingredient_suppliers(ingredient_id) WHERE is_primary = 1;

-- Recipes (dishes)
CREATE TABLE IF NOT EXISTS recipes (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  category TEXT,
  price REAL NOT NULL DEFAULT 0,
  servings_per_batch REAL NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS recipe_ingredient_lines (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  recipe_id INTEGER NOT NULL,
  ingredient_id INTEGER NOT NULL,
  quantity_per_batch REAL NOT NULL,
  FOREIGN KEY (recipe_id) REFERENCES recipes(id) ON DELETE CASCADE,
  FOREIGN KEY (ingredient_id) REFERENCES ingredients(id)
);

-- Dishes planned for an event (snapshot of the approved quotation)
CREATE TABLE IF NOT EXISTS event_planned_dishes (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  event_id INTEGER NOT NULL,
  recipe_id INTEGER NOT NULL,
  planned_quantity REAL NOT NULL,
  FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE CASCADE,
  FOREIGN KEY (recipe_id) REFERENCES recipes(id),
  UNIQUE (event_id, recipe_id)
);

-- Purchase orders (one live order per event)
CREATE TABLE IF NOT EXISTS purchase_orders (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  event_id INTEGER NOT NULL,
  state TEXT NOT NULL DEFAULT 'DRAFT',   -- DRAFT / APPROVED / PURCHASED / CANCELLED
  estimated_total REAL NOT NULL DEFAULT 0,
  notes TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE CASCADE
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_purchase_orders_live
  ON purchase_orders(event_id) WHERE state <> 'CANCELLED';

CREATE TABLE IF NOT EXISTS purchase_order_lines (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  order_id INTEGER NOT NULL,
  ingredient_id INTEGER NOT NULL,
  name TEXT NOT NULL,
  unit TEXT NOT NULL,
  quantity_needed REAL NOT NULL,
  quantity_in_stock REAL NOT NULL,
  quantity_to_buy REAL NOT NULL,
  unit_cost REAL NOT NULL,
  subtotal REAL NOT NULL,
  FOREIGN KEY (order_id) REFERENCES purchase_orders(id) ON DELETE CASCADE,
  FOREIGN KEY (ingredient_id) REFERENCES ingredients(id)
);

-- Inventory movements (audit log of every stock change)
CREATE TABLE IF NOT EXISTS inventory_movements (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  movement_type TEXT NOT NULL,           -- PURCHASE / USE / ADJUSTMENT / RETURN
  state TEXT NOT NULL DEFAULT 'DRAFT',   -- DRAFT / CONFIRMED
  movement_date TEXT NOT NULL,           -- ISO date
  event_id INTEGER,
  supplier TEXT,
  notes TEXT,
  created_at TEXT NOT NULL,
  confirmed_at TEXT,
  FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS inventory_movement_lines (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  movement_id INTEGER NOT NULL,
  ingredient_id INTEGER NOT NULL,
  quantity REAL NOT NULL,
  unit_cost REAL NOT NULL DEFAULT 0,
  FOREIGN KEY (movement_id) REFERENCES inventory_movements(id) ON DELETE CASCADE,
  FOREIGN KEY (ingredient_id) REFERENCES ingredients(id)
);

-- Staff
CREATE TABLE IF NOT EXISTS staff (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  full_name TEXT NOT NULL,
  id_number TEXT NOT NULL UNIQUE,
  role TEXT NOT NULL,
  billing_modality TEXT NOT NULL,
  base_rate REAL NOT NULL DEFAULT 0,
  overtime_rate REAL NOT NULL DEFAULT 0
);

-- Staff assigned to an event, with the computed amount owed
CREATE TABLE IF NOT EXISTS staff_assignments (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  event_id INTEGER NOT NULL,
  staff_id INTEGER NOT NULL,
  billing_modality TEXT NOT NULL,
  base_rate REAL NOT NULL,
  hours_worked REAL,
  overtime_rate REAL,
  start_time TEXT,
  end_time TEXT,
  amount_owed REAL NOT NULL DEFAULT 0,
  FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE CASCADE,
  FOREIGN KEY (staff_id) REFERENCES staff(id),
  UNIQUE (event_id, staff_id)
);

-- Equipment (menaje) catalogue; stock_total only drops through losses on return
CREATE TABLE IF NOT EXISTS equipment (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  category TEXT NOT NULL DEFAULT '',
  unit TEXT NOT NULL DEFAULT 'und',
  stock_total REAL NOT NULL DEFAULT 0 CHECK (stock_total >= 0),
  rental_price REAL NOT NULL DEFAULT 0,
  active INTEGER NOT NULL DEFAULT 1,
  created_at TEXT NOT NULL
);

-- One reservation per event, blocking equipment over a date range
CREATE TABLE IF NOT EXISTS equipment_reservations (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  event_id INTEGER NOT NULL UNIQUE,
  start_date TEXT NOT NULL,              -- ISO date
  end_date TEXT NOT NULL,                -- ISO date
  state TEXT NOT NULL DEFAULT 'DRAFT',   -- DRAFT / CONFIRMED / RETURNED / CANCELLED
  notes TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  CHECK (end_date >= start_date),
  FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS equipment_reservation_items (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  reservation_id INTEGER NOT NULL,
  equipment_id INTEGER NOT NULL,
  quantity REAL NOT NULL CHECK (quantity > 0),
  FOREIGN KEY (reservation_id) REFERENCES equipment_reservations(id) ON DELETE CASCADE,
  FOREIGN KEY (equipment_id) REFERENCES equipment(id),
  UNIQUE (reservation_id, equipment_id)
);

-- Equipment leaving for an event (OUTBOUND) and coming back (INBOUND, with losses)
CREATE TABLE IF NOT EXISTS equipment_movements (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  movement_type TEXT NOT NULL,           -- OUTBOUND / INBOUND
  state TEXT NOT NULL DEFAULT 'DRAFT',   -- DRAFT / CONFIRMED
  movement_date TEXT NOT NULL,
  event_id INTEGER,
  reservation_id INTEGER,
  notes TEXT,
  created_at TEXT NOT NULL,
  confirmed_at TEXT,
  FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE SET NULL,
  FOREIGN KEY (reservation_id) REFERENCES equipment_reservations(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS equipment_movement_lines (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  movement_id INTEGER NOT NULL,
  equipment_id INTEGER NOT NULL,
  quantity REAL NOT NULL,
  loss REAL NOT NULL DEFAULT 0,
  FOREIGN KEY (movement_id) REFERENCES equipment_movements(id) ON DELETE CASCADE,
  FOREIGN KEY (equipment_id) REFERENCES equipment(id)
);

-- Transport order (one per event)
CREATE TABLE IF NOT EXISTS transport_orders (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  event_id INTEGER NOT NULL UNIQUE,
  state TEXT NOT NULL DEFAULT 'DRAFT',   -- DRAFT / SCHEDULED / FINISHED / CANCELLED
  pickup_name TEXT,
  pickup_address TEXT,
  cargo_description TEXT,
  destination_address TEXT,
  unload_time TEXT,                      -- HH:MM
  pickup_time TEXT,                      -- HH:MM
  contact_name TEXT,
  contact_phone TEXT,
  vehicle TEXT,
  notes TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE CASCADE
);
"""
