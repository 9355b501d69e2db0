from __future__ import annotations

MONGO_UTIL_TYPES = """\
import mongoose from 'mongoose';

/**
 * Safely convert a value to an ObjectId.
 * Returns null when the value cannot be converted.
 */
export function toObjectId(
  id: string | mongoose.Types.ObjectId | null | undefined
): mongoose.Types.ObjectId | null {
  if (!id) return null;
  try {
    if (id instanceof mongoose.Types.ObjectId) {
      return id;
    }
    return new mongoose.Types.ObjectId(String(id));
  } catch (error) {
    return null;
  }
}

/**
 * Get a string id from anything carrying an _id.
 */
export function getSafeId(obj: any): string {
  if (!obj) return '';
  if (typeof obj === 'string') return obj;
  if (obj._id) {
    return typeof obj._id === 'string' ? obj._id : obj._id.toString();
  }
  return '';
}

export function hasObjectId(obj: any): obj is { _id: mongoose.Types.ObjectId } {
  return obj !== null && obj !== undefined && obj._id !== undefined;
}

export function isObjectId(value: any): value is mongoose.Types.ObjectId {
  return value instanceof mongoose.Types.ObjectId;
}
"""

PROMISE_UTILS = """\
export function isFulfilled<T>(
  result: PromiseSettledResult<T>
): result is PromiseFulfilledResult<T> {
  return result.status === 'fulfilled';
}

export function isRejected<T>(
  result: PromiseSettledResult<T>
): result is PromiseRejectedResult {
  return result.status === 'rejected';
}

export function getPromiseResult<T>(result: PromiseSettledResult<T>): T | undefined {
  return isFulfilled(result) ? result.value : undefined;
}

export function getPromiseError<T>(result: PromiseSettledResult<T>): any {
  return isRejected(result) ? result.reason : undefined;
}

export function filterFulfilled<T>(results: PromiseSettledResult<T>[]): T[] {
  return results.filter(isFulfilled).map((result) => result.value);
}

export function filterRejected<T>(results: PromiseSettledResult<T>[]): any[] {
  return results.filter(isRejected).map((result) => result.reason);
}
"""

EXPRESS_EXTENSIONS = """\
import { Request } from 'express';

/**
 * Request carrying the authenticated user attached by auth middleware.
 */
export interface AuthenticatedRequest extends Request {
  user?: {
    id: string;
    email: string;
    organizationId?: string;
    role?: string;
    permissions?: string[];
    [key: string]: any;
  };
}
"""

CANONICAL_UTILITIES: dict[str, str] = {
    "mongo-util-types": MONGO_UTIL_TYPES,
    "promise-utils": PROMISE_UTILS,
    "express-extensions": EXPRESS_EXTENSIONS,
}
